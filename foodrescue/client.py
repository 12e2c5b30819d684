"""Thin HTTP client for the Food Rescue Hub API.

The base URL belongs to the client instance and the bearer token is passed
to every authenticated call; nothing is kept in module state.
"""
import json

import requests


class ApiError(Exception):
    def __init__(self, status, message):
        super().__init__(f'{status}: {message}')
        self.status = status
        self.message = message


class FoodRescueClient:
    def __init__(self, base_url, session=None, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, token=None, **kwargs):
        headers = kwargs.pop('headers', {})
        if token:
            headers['Authorization'] = f'Bearer {token}'
        response = self.session.request(method, f'{self.base_url}{path}', headers=headers,
                                        timeout=self.timeout, **kwargs)
        if not response.ok:
            try:
                message = response.json().get('message', response.reason)
            except ValueError:
                message = response.reason
            raise ApiError(response.status_code, message)
        return response.json()

    def list_available(self, address=None, food_type=None, expiry_timeframe=None):
        params = {'address': address, 'foodType': food_type, 'expiryTimeframe': expiry_timeframe}
        return self._request('GET', '/api/donations/available',
                             params={k: v for k, v in params.items() if v})

    def nearby(self, token, lat, lng, distance=10, food_type=None, expiry_timeframe=None):
        params = {'lat': lat, 'lng': lng, 'distance': distance}
        if food_type:
            params['foodType'] = food_type
        if expiry_timeframe:
            params['expiryTimeframe'] = expiry_timeframe
        return self._request('GET', '/api/donations/nearby', token=token, params=params)

    def get_donation(self, donation_id):
        return self._request('GET', f'/api/donations/{donation_id}')

    def create_donation(self, token, donation, image=None):
        """``image`` is an optional ``(filename, fileobj, mimetype)`` tuple."""
        if image is None:
            return self._request('POST', '/api/donations', token=token, json=donation)
        form = {}
        for key, value in donation.items():
            if key == 'pickupAddress':
                for sub_key, sub_value in value.items():
                    form[f'{key}[{sub_key}]'] = sub_value
            elif isinstance(value, (dict, list)):
                form[key] = json.dumps(value)
            else:
                form[key] = value
        return self._request('POST', '/api/donations', token=token, data=form,
                             files={'image': image})

    def claim(self, token, donation_id, pickup_time=None):
        body = {'pickupTime': pickup_time} if pickup_time else {}
        return self._request('PATCH', f'/api/donations/{donation_id}/claim', token=token, json=body)

    def complete(self, token, donation_id, thank_you_message=None):
        body = {'thankYouMessage': thank_you_message} if thank_you_message else {}
        return self._request('POST', f'/api/donations/{donation_id}/complete', token=token, json=body)

    def mark_expired(self, token, donation_id):
        return self._request('PATCH', f'/api/donations/{donation_id}/expired', token=token)

    def history(self, token):
        return self._request('GET', '/api/donations/user/history', token=token)

    def notifications(self, token, unread_only=False):
        params = {'unread': 'true'} if unread_only else {}
        return self._request('GET', '/api/notifications', token=token, params=params)
