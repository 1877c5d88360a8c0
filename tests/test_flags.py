#tests\test_flags.py

"""Test flag definition export."""

from node_admin.flags import DEFINED_FLAGS, FlagDefinition, defined_flags_document


class TestDefinedFlags:
    """Test the exported flag document."""

    def test_all_flags_exported(self):
        document = defined_flags_document()

        assert set(document) == {flag.flag_id for flag in DEFINED_FLAGS}

    def test_sorted_by_flag_id(self):
        flags = [
            FlagDefinition("b-flag", "B", "Takes effect immediately"),
            FlagDefinition("a-flag", "A", "Takes effect immediately", ("hostname",)),
        ]

        document = defined_flags_document(flags)

        assert list(document) == ["a-flag", "b-flag"]
        assert document["a-flag"] == {
            "description": "A",
            "modification-effect": "Takes effect immediately",
            "dimensions": ["hostname"],
        }
        assert document["b-flag"]["dimensions"] == []
