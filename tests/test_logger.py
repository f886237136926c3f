import io

from destill.logger import ConsoleLogger, SilentLogger


def test_console_info_goes_to_stdout(capsys):
    ConsoleLogger().info("found %d issues in job '%s'", 3, "build")
    captured = capsys.readouterr()
    assert captured.out == "[INFO] found 3 issues in job 'build'\n"
    assert captured.err == ""


def test_console_error_goes_to_stderr(capsys):
    ConsoleLogger().error("failed: %v", "boom")
    captured = capsys.readouterr()
    assert captured.err == "[ERROR] failed: boom\n"
    assert captured.out == ""


def test_console_debug_prefix(capsys):
    ConsoleLogger().debug("plain message")
    assert capsys.readouterr().out == "[DEBUG] plain message\n"


def test_console_float_formatting():
    out = io.StringIO()
    ConsoleLogger(stdout=out).debug("confidence: %.2f", 0.5)
    assert out.getvalue() == "[DEBUG] confidence: 0.50\n"


def test_console_custom_streams():
    out, err = io.StringIO(), io.StringIO()
    logger = ConsoleLogger(stdout=out, stderr=err)
    logger.info("hello")
    logger.error("bad")
    assert out.getvalue() == "[INFO] hello\n"
    assert err.getvalue() == "[ERROR] bad\n"


def test_silent_logger_writes_nothing(capsys):
    logger = SilentLogger()
    logger.info("a %s", "b")
    logger.error("c")
    logger.debug("d")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""