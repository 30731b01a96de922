"""
Credential & token service.
Signs and verifies access/refresh JWTs using explicit settings.
"""
import time
import logging

import jwt
from flask import current_app

logger = logging.getLogger(__name__)

ACCESS = 'access'
REFRESH = 'refresh'


class TokenService:
    """Issue and check signed access and refresh tokens.

    Tokens are stateless: an access token is valid until it expires or its
    identity changes password (checked by the caller against ``iat``).
    There is no revocation list.
    """

    def __init__(self, settings):
        self.settings = settings

    def _secret_for(self, kind):
        if kind == ACCESS:
            return self.settings.access_secret
        if kind == REFRESH:
            return self.settings.refresh_secret
        raise ValueError(f'Unknown token kind: {kind}')

    def _sign(self, identity_id, kind, lifetime):
        # iat keeps sub-second precision so a token minted right after a
        # password change compares as newer than the change.
        now = time.time()
        payload = {
            'sub': str(identity_id),
            'type': kind,
            'iat': now,
            'exp': int(now + lifetime.total_seconds()),
        }
        return jwt.encode(payload, self._secret_for(kind), algorithm=self.settings.algorithm)

    def sign_access_token(self, identity_id):
        return self._sign(identity_id, ACCESS, self.settings.access_expires)

    def sign_refresh_token(self, identity_id):
        return self._sign(identity_id, REFRESH, self.settings.refresh_expires)

    def decode(self, token, kind=ACCESS):
        """Decode a token, raising ``jwt.InvalidTokenError`` subclasses on failure."""
        payload = jwt.decode(
            token,
            self._secret_for(kind),
            algorithms=[self.settings.algorithm],
            options={'require': ['sub', 'iat', 'exp']},
        )
        if payload.get('type') != kind:
            raise jwt.InvalidTokenError(f'Expected a {kind} token')
        return payload

    def verify(self, token, kind=ACCESS):
        """Decoded claims, or None when the token is expired, malformed or forged."""
        if not token:
            return None
        try:
            return self.decode(token, kind)
        except jwt.InvalidTokenError as e:
            logger.debug('Rejected %s token: %s', kind, e)
            return None

    @property
    def access_max_age(self):
        return int(self.settings.access_expires.total_seconds())

    @property
    def refresh_max_age(self):
        return int(self.settings.refresh_expires.total_seconds())


def get_token_service():
    """The TokenService built for the current app."""
    return current_app.extensions['token_service']
