import os

from foodrescue import create_app
from foodrescue.config import config_by_name

app = create_app(config_by_name[os.environ.get('FLASK_ENV', 'production')])

# Ensure the app runs only if this script is executed directly
if __name__ == '__main__':
    with app.app_context():
        from foodrescue.extensions import db
        db.create_all()
    app.run(debug=app.config.get('DEBUG', False), port=int(os.environ.get('PORT', 5000)),
            use_reloader=False)
