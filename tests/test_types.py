"""Tests for validated identifier constructors and pydantic field types."""

import pytest
from pydantic import BaseModel, ValidationError

from divban.errors import ErrorCode, GeneralError
from divban.types import (
    ServiceNameField,
    UserIdField,
    absolute_path,
    container_name,
    join_path,
    service_name,
    user_id,
    user_id_to_group_id,
    username,
)


class TestSmartConstructors:
    """Constructors accept valid values and raise INVALID_ARGS otherwise."""

    def test_valid_values(self):
        assert absolute_path("/srv/immich") == "/srv/immich"
        assert service_name("immich") == "immich"
        assert container_name("immich-postgres") == "immich-postgres"
        assert username("immich") == "immich"
        assert user_id(1100) == 1100

    @pytest.mark.parametrize(
        "constructor, value",
        [
            (absolute_path, "srv/immich"),
            (service_name, "Immich"),
            (service_name, "1password"),
            (container_name, "-bad"),
            (username, "Root"),
            (username, "a" * 33),
            (user_id, -1),
            (user_id, 65535),
        ],
    )
    def test_invalid_values(self, constructor, value):
        with pytest.raises(GeneralError) as exc_info:
            constructor(value)
        assert exc_info.value.code == ErrorCode.INVALID_ARGS

    def test_group_id_matches_user_id(self):
        assert user_id_to_group_id(user_id(1100)) == 1100


class TestJoinPath:
    def test_joins_segments(self):
        assert join_path("/srv/immich", "backups") == "/srv/immich/backups"

    def test_strips_redundant_slashes(self):
        assert join_path("/srv/immich/", "/backups/", "a.tar.gz") == "/srv/immich/backups/a.tar.gz"


class TestPydanticFields:
    """Field aliases apply the same rules inside models."""

    class _Model(BaseModel):
        name: ServiceNameField
        uid: UserIdField

    def test_valid(self):
        m = self._Model(name="actual", uid=1101)
        assert m.name == "actual"

    def test_invalid(self):
        with pytest.raises(ValidationError):
            self._Model(name="Actual", uid=1101)
        with pytest.raises(ValidationError):
            self._Model(name="actual", uid=70000)
