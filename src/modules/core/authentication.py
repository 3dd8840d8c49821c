"""JWT authentication bound to the selected store.

SimpleJWT loads the token's user from the ``default`` database.  When the
persistence gateway has fallen back to another candidate, the primary is
typically the store that is down, so the user is read from the alias the
view resolved (``request.store_alias``) instead.  Users must therefore
exist, with the same primary keys, on every candidate store.

A connection failure while loading the user is a ``StoreUnavailable``
(503), not an authentication failure.
"""

from __future__ import annotations

from django.db import DEFAULT_DB_ALIAS
from django.utils.translation import gettext_lazy as _
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken
from rest_framework_simplejwt.settings import api_settings

from modules.core.repositories.errors import store_errors


class StoreJWTAuthentication(JWTAuthentication):
    store_alias: str = DEFAULT_DB_ALIAS

    def authenticate(self, request):
        # Views outside StoreBoundViewMixin keep the default alias.
        self.store_alias = getattr(request, "store_alias", DEFAULT_DB_ALIAS)
        return super().authenticate(request)

    def get_user(self, validated_token):
        try:
            user_id = validated_token[api_settings.USER_ID_CLAIM]
        except KeyError:
            raise InvalidToken(_("Token contained no recognizable user identification"))

        with store_errors(self.store_alias):
            try:
                user = self.user_model._default_manager.db_manager(self.store_alias).get(
                    **{api_settings.USER_ID_FIELD: user_id}
                )
            except self.user_model.DoesNotExist:
                raise AuthenticationFailed(_("User not found"), code="user_not_found")

        if not user.is_active:
            raise AuthenticationFailed(_("User is inactive"), code="user_inactive")
        return user
