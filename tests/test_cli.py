"""Tests for the command line entry point."""
import sys
from unittest.mock import patch

import pytest

import main


@pytest.mark.parametrize("value", ["0", "-2", "three"])
def test_concurrency_must_be_positive(value, capsys):
    argv = ["main.py", "--entities", "TP53", "--concurrency", value]
    with patch.object(sys, "argv", argv), patch.object(main, "run_analysis") as run:
        with pytest.raises(SystemExit) as info:
            main.main()

    assert info.value.code == 2
    assert "--concurrency" in capsys.readouterr().err
    run.assert_not_called()


def test_positive_concurrency_accepted():
    assert main._positive_int("4") == 4
