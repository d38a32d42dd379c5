"""LDAP 인증 유틸리티 — Active Directory bind (ldap3).

LDAP authentication helper. Binds as ``{username}@{LDAP_DOMAIN}`` and then
searches the directory for the account's mail, display name and department.
ldap3 is synchronous, so the bind runs in a worker thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from ldap3 import NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from app.config import settings
from app.utils.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

_SEARCH_ATTRIBUTES: list[str] = ["mail", "displayName", "department", "sAMAccountName"]


@dataclass(frozen=True)
class DirectoryProfile:
    """LDAP 조회 결과 (Profile returned by a successful bind)."""

    username: str
    email: str | None = None
    display_name: str | None = None
    department: str | None = None


def _first(attrs: dict[str, Any], key: str) -> str | None:
    value = attrs.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class LdapAuthenticator:
    """ldap3 기반 인증기.

    Directory authenticator backed by ldap3.

    Attributes:
        url: 서버 URL (ldap:// 또는 ldaps://)
        domain: UPN 도메인 (UPN suffix appended to the username)
        base_dn: 검색 기준 DN (Search base DN)
        timeout: 연결/응답 타임아웃 초 (Connect and receive timeout, seconds)
    """

    def __init__(
        self,
        url: str | None = None,
        domain: str | None = None,
        base_dn: str | None = None,
        timeout: int | None = None,
    ) -> None:
        self.url: str = url or settings.LDAP_URL
        self.domain: str = domain or settings.LDAP_DOMAIN
        self.base_dn: str = base_dn or settings.LDAP_BASE_DN
        self.timeout: int = timeout or settings.LDAP_TIMEOUT_SECONDS

    def _bind_and_search(self, username: str, password: str) -> DirectoryProfile | None:
        server = Server(self.url, get_info=NONE, connect_timeout=self.timeout)
        conn = Connection(
            server,
            user=f"{username}@{self.domain}",
            password=password,
            receive_timeout=self.timeout,
        )
        try:
            if not conn.bind():
                logger.info("LDAP bind rejected for %s: %s", username, conn.result.get("description"))
                return None

            conn.search(
                search_base=self.base_dn,
                search_filter=f"(sAMAccountName={escape_filter_chars(username)})",
                search_scope=SUBTREE,
                attributes=_SEARCH_ATTRIBUTES,
            )
            if not conn.entries:
                # bind는 성공했으나 검색 결과 없음 — Bind succeeded, no entry visible
                return DirectoryProfile(username=username)

            attrs: dict[str, Any] = conn.entries[0].entry_attributes_as_dict
            return DirectoryProfile(
                username=username,
                email=_first(attrs, "mail"),
                display_name=_first(attrs, "displayName"),
                department=_first(attrs, "department"),
            )
        finally:
            conn.unbind()

    async def authenticate(self, username: str, password: str) -> DirectoryProfile:
        """디렉터리 자격 증명을 검증합니다.

        Verify directory credentials.

        Args:
            username: sAMAccountName (도메인 제외 — without domain suffix)
            password: 비밀번호 (Password; empty passwords never reach the server)

        Returns:
            DirectoryProfile: 디렉터리 프로필 (Directory profile)

        Raises:
            UnauthorizedError: 자격 증명 불일치 또는 서버 오류 (Bad credentials or server error)
        """
        username = username.strip()
        # 빈 비밀번호는 익명 bind로 성공할 수 있으므로 차단
        if not username or not password:
            raise UnauthorizedError("Invalid credentials")

        try:
            profile = await asyncio.to_thread(self._bind_and_search, username, password)
        except LDAPException as exc:
            logger.warning("LDAP error for %s: %s", username, exc)
            raise UnauthorizedError("Invalid credentials") from exc

        if profile is None:
            raise UnauthorizedError("Invalid credentials")
        return profile


# 싱글턴 인스턴스 — Singleton instance
ldap_authenticator: LdapAuthenticator = LdapAuthenticator()
