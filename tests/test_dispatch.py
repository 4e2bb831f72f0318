"""Tests for adapter dispatch."""

import pytest
from pydantic import ValidationError

from backup_runner.adapters import (
    ADAPTERS,
    AdapterKind,
    Archive,
    Custom,
    MySQL,
    PostgreSQL,
    UnknownAdapter,
    dispatch,
)
from backup_runner.config import Procedure
from backup_runner.procedures import resolve


class TestDispatch:
    """Tests for dispatch."""

    @pytest.mark.parametrize(
        "adapter_name,expected",
        [
            ("mysql", MySQL),
            ("postgresql", PostgreSQL),
            ("archive", Archive),
            ("custom", Custom),
        ],
    )
    def test_known_adapters(self, adapter_name, expected):
        """Test each known tag builds its adapter with the given trigger and procedure."""
        procedure = Procedure(trigger="job", adapter_name=adapter_name)

        adapter = dispatch("job", procedure)

        assert type(adapter) is expected
        assert adapter.trigger == "job"
        assert adapter.procedure is procedure

    def test_unknown_adapter_names_tag(self):
        """Test an unknown tag fails with the literal value in the message."""
        procedure = Procedure(trigger="legacy", adapter_name="oracle")

        with pytest.raises(UnknownAdapter, match='"oracle"') as excinfo:
            dispatch("legacy", procedure)

        assert excinfo.value.adapter_name == "oracle"

    @pytest.mark.parametrize("adapter_name", ["MySQL", "ARCHIVE", " custom", ""])
    def test_tags_match_exactly(self, adapter_name):
        """Test tags are not case folded or stripped."""
        with pytest.raises(UnknownAdapter):
            dispatch("job", Procedure(trigger="job", adapter_name=adapter_name))

    def test_table_covers_every_kind(self):
        """Test the dispatch table is exhaustive over AdapterKind."""
        assert set(ADAPTERS) == set(AdapterKind)

    def test_construction_errors_propagate(self):
        """Test invalid adapter options surface unchanged from construction."""
        procedure = Procedure(trigger="db", adapter_name="mysql", options={"port": "not-a-port"})

        with pytest.raises(ValidationError):
            dispatch("db", procedure)

    def test_resolve_then_dispatch(self, procedures):
        """Test the lookup result feeds dispatch."""
        procedure = resolve("weekly-archive", procedures)

        adapter = dispatch("weekly-archive", procedure)

        assert isinstance(adapter, Archive)
        assert adapter.procedure is procedures[1]
