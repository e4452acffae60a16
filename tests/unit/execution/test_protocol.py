"""
Unit Tests for the terminal wire protocol
"""
import json

import pytest

from appforge.core.exceptions import CommandFailedError, CommandTimeoutError
from appforge.modules.execution.protocol import (
    CommandResponse,
    ErrorCode,
    MessageType,
    command_envelope,
    ensure_directory_command,
    escape_shell_content,
    new_correlation_id,
    parse_message,
    resize_envelope,
    write_file_command,
)


class TestEscaping:
    """Test shell escaping for file writes"""

    def test_escapes_special_characters(self):
        """Test backslash, quote, dollar and backtick are escaped"""
        assert escape_shell_content('a\\b "c" $HOME `ls`') == 'a\\\\b \\"c\\" \\$HOME \\`ls\\`'

    def test_backslash_is_escaped_first(self):
        """Test escapes added for quotes are not doubled"""
        assert escape_shell_content('"') == '\\"'

    def test_write_file_command(self):
        """Test the printf write command"""
        command = write_file_command('demo/src/App.tsx', 'const a = "$x";')

        assert command == 'printf \'%s\\n\' "const a = \\"\\$x\\";" > demo/src/App.tsx'

    def test_paths_are_quoted(self):
        """Test unusual paths are shell-quoted"""
        assert ensure_directory_command('demo/my dir') == "mkdir -p 'demo/my dir'"
        assert write_file_command("demo/it's.txt", 'x').endswith("> 'demo/it'\"'\"'s.txt'")


class TestEnvelopes:
    """Test outbound envelopes"""

    def test_command_envelope(self):
        envelope = command_envelope('ls', 'session-1', 'cmd-1')

        assert envelope == {'type': 'command', 'command': 'ls', 'sessionId': 'session-1', 'id': 'cmd-1'}

    def test_resize_envelope(self):
        assert resize_envelope(24, 80) == {'type': 'resize', 'rows': 24, 'cols': 80}

    def test_correlation_ids_are_unique(self):
        assert len({new_correlation_id() for _ in range(100)}) == 100


class TestParseMessage:
    """Test inbound frame parsing"""

    def test_command_response(self):
        raw = json.dumps({'type': 'commandResponse', 'id': 'cmd-1', 'output': 'ok', 'success': True})

        message = parse_message(raw)

        assert message.type == MessageType.COMMAND_RESPONSE.value
        assert message.payload['id'] == 'cmd-1'
        assert message.text == 'ok'

    @pytest.mark.parametrize('raw', ['plain terminal output', '[1, 2]', '{"no_type": 1}', b'bytes output'])
    def test_non_envelopes_are_output(self, raw):
        """Test anything that is not a typed JSON object becomes output"""
        message = parse_message(raw)

        assert message.type == MessageType.OUTPUT.value
        assert message.text == (raw.decode() if isinstance(raw, bytes) else raw)

    def test_project_status_text(self):
        message = parse_message('{"type": "projectStatus", "message": "done"}')

        assert message.text == 'done'


class TestCommandResponse:
    """Test CommandResponse helpers"""

    def test_from_error(self):
        """Test synthesized failures carry the error code"""
        error = CommandTimeoutError('sleep 10', 1.0)

        response = CommandResponse.from_error('cmd-1', 'sleep 10', error)

        assert response.success is False
        assert response.error_code == ErrorCode.COMMAND_TIMEOUT
        assert response.command == 'sleep 10'

    def test_raise_for_status_success(self):
        response = CommandResponse(correlation_id='cmd-1', output='ok')

        assert response.raise_for_status() is response

    def test_raise_for_status_reraises_stored_error(self):
        error = CommandTimeoutError('sleep 10', 1.0)

        with pytest.raises(CommandTimeoutError):
            CommandResponse.from_error('cmd-1', 'sleep 10', error).raise_for_status()

    def test_raise_for_status_endpoint_failure(self):
        response = CommandResponse(correlation_id='cmd-1', output='boom', success=False,
                                   error_code=ErrorCode.COMMAND_FAILED, command='false')

        with pytest.raises(CommandFailedError) as exc_info:
            response.raise_for_status()

        assert exc_info.value.details['output'] == 'boom'

    def test_connection_failure_flag(self):
        response = CommandResponse(correlation_id='cmd-1', success=False,
                                   error_code=ErrorCode.CONNECTION_FAILED)

        assert response.is_connection_failure
