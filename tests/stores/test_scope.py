"""Tests for serializable access scopes."""

import base64
import json

import pytest

from cidvault.core import InvalidConfiguration, ObjectStoreConfig
from cidvault.stores import AccessScope, Caveat, PathRestriction, PermissionDenied


@pytest.fixture
def scope() -> AccessScope:
    """Unrestricted scope with credentials."""
    return AccessScope(
        endpoint_url="https://gateway.test",
        access_key="AK",
        secret_key="SK",
        region="eu-west-1",
    )


class TestCaveat:
    """Tests for Caveat."""

    def test_forbids(self) -> None:
        """Each flag forbids its operation."""
        caveat = Caveat(disallow_writes=True)
        assert caveat.forbids("write")
        assert not caveat.forbids("read")
        assert not caveat.forbids("delete")

    def test_unknown_operation(self) -> None:
        """Unknown operations are a programming error."""
        with pytest.raises(ValueError):
            Caveat().forbids("list")

    def test_merge_keeps_forbidden(self) -> None:
        """Merging never re-allows an operation."""
        merged = Caveat(disallow_reads=True).merge(Caveat(disallow_deletes=True))
        assert merged == Caveat(disallow_reads=True, disallow_deletes=True)


class TestAccessScope:
    """Tests for AccessScope."""

    def test_from_config(self) -> None:
        """Raw credentials become an unrestricted scope."""
        config = ObjectStoreConfig(endpoint_url="https://gw", access_key="AK", secret_key="SK")
        scope = AccessScope.from_config(config)
        assert scope.endpoint_url == "https://gw"
        assert scope.restrictions == ()
        assert scope.allows("write", "any", "key")

    def test_restrict_path(self, scope: AccessScope) -> None:
        """A restricted scope only allows keys under its prefix."""
        restricted = scope.restrict(bucket="mirror", path_prefix="backups")
        assert restricted.restrictions == (PathRestriction("mirror", "backups/"),)
        assert restricted.allows("write", "mirror", "backups/Qm/Qm")
        assert not restricted.allows("write", "mirror", "other/Qm")
        assert not restricted.allows("write", "other", "backups/Qm")
        # Original unchanged
        assert scope.allows("write", "other", "anything")

    def test_restrict_caveat(self, scope: AccessScope) -> None:
        """Caveats accumulate."""
        restricted = scope.restrict(caveat=Caveat(disallow_writes=True))
        assert not restricted.allows("write", "b", "k")
        assert restricted.allows("read", "b", "k")

    def test_restrict_cannot_widen(self, scope: AccessScope) -> None:
        """Restricting to a path outside the current scope fails."""
        restricted = scope.restrict(bucket="mirror", path_prefix="backups")
        with pytest.raises(PermissionDenied, match="widen"):
            restricted.restrict(bucket="other")
        # Narrowing further is fine
        narrower = restricted.restrict(bucket="mirror", path_prefix="backups/daily")
        assert narrower.allows("read", "mirror", "backups/daily/x")
        assert not narrower.allows("read", "mirror", "backups/weekly/x")

    def test_check(self, scope: AccessScope) -> None:
        """check raises PermissionDenied for forbidden operations."""
        restricted = scope.restrict(caveat=Caveat(disallow_reads=True))
        restricted.check("write", "b", "k")
        with pytest.raises(PermissionDenied, match="read on b/k"):
            restricted.check("read", "b", "k")


class TestSerialization:
    """Tests for serialize/parse."""

    def test_round_trip(self, scope: AccessScope) -> None:
        """parse inverts serialize, restrictions included."""
        restricted = scope.restrict(
            caveat=Caveat(disallow_deletes=True), bucket="mirror", path_prefix="p"
        )
        assert AccessScope.parse(restricted.serialize()) == restricted

    def test_url_safe(self, scope: AccessScope) -> None:
        """Serialized scopes only use URL-safe characters."""
        serialized = scope.serialize()
        assert "+" not in serialized
        assert "/" not in serialized

    def test_versioned(self, scope: AccessScope) -> None:
        """The payload carries a version number."""
        data = json.loads(base64.urlsafe_b64decode(scope.serialize()))
        assert data["v"] == 1

    def test_unknown_version(self) -> None:
        """Future versions are rejected."""
        payload = base64.urlsafe_b64encode(json.dumps({"v": 2}).encode()).decode()
        with pytest.raises(InvalidConfiguration, match="version"):
            AccessScope.parse(payload)

    @pytest.mark.parametrize("value", ["not base64!!", base64.urlsafe_b64encode(b"[1]").decode(), ""])
    def test_garbage(self, value: str) -> None:
        """Garbage is reported as a configuration error."""
        with pytest.raises(InvalidConfiguration):
            AccessScope.parse(value)
