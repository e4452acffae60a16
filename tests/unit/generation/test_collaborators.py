"""
Unit Tests for AI collaborators

The Anthropic client is mocked; Gemini requests go through httpx.MockTransport.
"""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from appforge.core.config import settings
from appforge.modules.generation.collaborators import (
    SYSTEM_PROMPT,
    AnthropicCollaborator,
    GeminiCollaborator,
    get_collaborator,
)


REPLY = '''A notes app.

```json
{"type": "frontend", "language": "javascript", "name": "notes"}
```

```jsx
// src/App.jsx
export default function App() { return null; }
```
'''


def anthropic_client(text=REPLY, error=None):
    client = MagicMock()
    if error is not None:
        client.messages.create = AsyncMock(side_effect=error)
    else:
        client.messages.create = AsyncMock(return_value=SimpleNamespace(
            id='msg_test',
            stop_reason='end_turn',
            content=[SimpleNamespace(type='text', text=text)],
        ))
    return client


class TestAnthropicCollaborator:
    """Test AnthropicCollaborator"""

    async def test_generate_splits_reply(self):
        client = anthropic_client()
        collaborator = AnthropicCollaborator(client=client, model='test-model')

        result = await collaborator.generate('make a notes app')

        assert result.error is None
        assert result.text == 'A notes app.'
        assert result.config.name == 'notes'
        assert '// src/App.jsx' in result.code

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs['model'] == 'test-model'
        assert kwargs['system'] == SYSTEM_PROMPT
        assert kwargs['messages'] == [{'role': 'user', 'content': 'make a notes app'}]

    async def test_provider_error_is_returned(self):
        collaborator = AnthropicCollaborator(client=anthropic_client(error=RuntimeError('overloaded')))

        result = await collaborator.generate('anything')

        assert result.error == 'overloaded'
        assert result.text == ''
        assert result.config.name == 'error-project'

    def test_default_client_uses_request_timeout(self):
        """Test the SDK client is built with a plain seconds timeout"""
        collaborator = AnthropicCollaborator(api_key='test-key')

        assert collaborator.client.timeout == settings.AI_REQUEST_TIMEOUT


class TestGeminiCollaborator:
    """Test GeminiCollaborator"""

    async def test_generate_content_request(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={
                'candidates': [{'content': {'parts': [{'text': REPLY}]}}]
            })

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            collaborator = GeminiCollaborator(
                api_key='key-123', model='gemini-test', base_url='https://gemini.test/v1beta/', http_client=client
            )
            result = await collaborator.generate('make a notes app')

        assert result.config.name == 'notes'
        request = requests[0]
        assert request.url.path == '/v1beta/models/gemini-test:generateContent'
        assert request.url.params['key'] == 'key-123'
        body = json.loads(request.content)
        assert body['contents'][0]['parts'][0]['text'] == 'make a notes app'
        assert body['systemInstruction']['parts'][0]['text'] == SYSTEM_PROMPT

    async def test_http_error_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={'error': {'message': 'API key not valid'}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            collaborator = GeminiCollaborator(api_key='bad', http_client=client)
            result = await collaborator.generate('anything')

        assert result.error == 'API key not valid'

    async def test_reply_without_candidates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={'candidates': []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await GeminiCollaborator(api_key='k', http_client=client).generate('anything')

        assert result.error is None
        assert result.text == ''


class TestGetCollaborator:
    """Test provider lookup"""

    def test_providers(self):
        assert isinstance(get_collaborator('gemini'), GeminiCollaborator)
        assert isinstance(get_collaborator('Anthropic'), AnthropicCollaborator)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            get_collaborator('unknown')
