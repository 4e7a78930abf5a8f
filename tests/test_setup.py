"""Test that the project setup is working correctly."""

import stackpulse


def test_version() -> None:
    """Test that version is defined."""
    assert stackpulse.__version__ == "1.0.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from stackpulse import alerter, api, chain, ingestor, storage

    # Just verify imports work
    assert chain is not None
    assert ingestor is not None
    assert alerter is not None
    assert storage is not None
    assert api is not None
