from osicsetup.model import VerificationResult
from osicsetup.ui.console import Console


def test_no_color_codes_when_not_a_terminal(capsys):
    Console().print_status("git", True)
    Console().print_results([VerificationResult("gaw", False, "not on PATH")])
    out = capsys.readouterr().out
    assert "\x1b[" not in out
    assert "Checking for git... [ OK ]" in out
    assert "[ FAILED ]" in out


def test_color_can_be_forced(capsys):
    Console(color=True).print_status("git", False)
    assert "\x1b[" in capsys.readouterr().out
