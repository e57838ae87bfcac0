import pytest

from osicsetup import catalog
from osicsetup.patcher import append_line, apply_rules, comment_out, patch_text, replace_text


def test_append_only_once_across_runs(tmp_path):
    target = tmp_path / "sky130A.magicrc"
    target.write_text("tech load sky130A\n")
    rules = [append_line("# Custom bindkeys for IIC"), append_line("source /opt/iic/iic-magic-bindkeys")]

    assert apply_rules(target, rules) is True
    once = target.read_text()
    assert apply_rules(target, rules) is False
    twice = target.read_text()

    assert once == twice
    assert twice.splitlines() == [
        "tech load sky130A",
        "# Custom bindkeys for IIC",
        "source /opt/iic/iic-magic-bindkeys",
    ]


def test_xschemrc_rules_comment_out_and_keep_env_literal(config, pdk_tree):
    path = pdk_tree / "xschem" / "xschemrc"
    rules = catalog.xschemrc_rules(config)

    apply_rules(path, rules)
    first = path.read_text()
    apply_rules(path, rules)
    second = path.read_text()

    assert first == second
    lines = second.splitlines()
    assert "# set SKYWATER_MODELS /foundry/models" in lines
    assert "# set SKYWATER_STD_CELLS /foundry/stdcells" in lines
    assert lines.count("set SKYWATER_MODELS $env(PDK_ROOT)/$env(PDK)/libs.tech/ngspice") == 1
    assert lines.count("set SKYWATER_STDCELLS $env(PDK_ROOT)/$env(PDK)/libs.ref/sky130_fd_sc_hd/spice") == 1
    # not expanded at generation time
    assert str(config.pdk_root) not in second
    assert "append XSCHEM_LIBRARY_PATH :/foo" in lines


def test_appended_line_is_not_rewritten_by_its_own_rule():
    rules = [comment_out(r"^set X", then_append="set X new")]
    text = patch_text("set X old\n", rules)
    assert text == "# set X old\nset X new\n"
    assert patch_text(text, rules) == text


def test_default_comment_out_does_not_stack_hashes():
    rules = [comment_out(r"SKYWATER")]
    once = patch_text("set SKYWATER_MODELS a\n", rules)
    assert once == "# set SKYWATER_MODELS a\n"
    assert patch_text(once, rules) == once


def test_replace_text_is_applied_once():
    rules = [replace_text(r"GETTEXT_MACRO_VERSION = 0\.20\b", "GETTEXT_MACRO_VERSION = 0.19")]
    text = "GETTEXT_MACRO_VERSION = 0.20\nOTHER = 1\n"
    once = patch_text(text, rules)
    assert once == "GETTEXT_MACRO_VERSION = 0.19\nOTHER = 1\n"
    assert patch_text(once, rules) == once


def test_rule_that_rewrites_its_own_output_is_rejected():
    with pytest.raises(ValueError):
        patch_text("a\n", [replace_text(r"a", "aa")])


def test_unchanged_text_is_returned_verbatim():
    assert patch_text("no newline at end", [append_line("no newline at end")]) == "no newline at end"


def test_dry_run_does_not_write(tmp_path):
    target = tmp_path / "rc"
    target.write_text("x\n")
    assert apply_rules(target, [append_line("y")], dry_run=True) is True
    assert target.read_text() == "x\n"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        apply_rules(tmp_path / "nope", [append_line("y")])


def test_non_utf8_bytes_survive_patching(tmp_path):
    target = tmp_path / "sky130A.magicrc"
    target.write_bytes(b"# \xa9 2020 SkyWater\ntech load sky130A\n")

    assert apply_rules(target, [append_line("# Custom bindkeys for IIC")]) is True
    assert target.read_bytes() == b"# \xa9 2020 SkyWater\ntech load sky130A\n# Custom bindkeys for IIC\n"
    assert apply_rules(target, [append_line("# Custom bindkeys for IIC")]) is False
