"""
Integration Tests - scaffolding against a real websocket terminal server

Starts a local websockets server that acknowledges every command, then runs
complete sessions through the default websocket transport.
"""
import json
import socket

import pytest
import websockets

from appforge.modules.execution.connection import ConnectionManager
from appforge.modules.orchestrator.session_orchestrator import SessionOrchestrator
from appforge.schemas.session import MaterializationStatus


RESPONSE = '''A landing page.

```json
{"type": "fullstack", "language": "javascript", "name": "landing",
 "backend": {"framework": "express", "database": "none"}}
```

```jsx
// Hero.jsx
export const Hero = () => <section className="hero" />;
```

```js
// server.js
const express = require('express');
express().listen(3000);
```
'''


@pytest.fixture
async def terminal_server():
    """Websocket server that records commands and reports success"""
    received = []

    async def handler(websocket):
        await websocket.send(json.dumps({'type': 'output', 'content': 'terminal ready'}))
        async for raw in websocket:
            message = json.loads(raw)
            if message.get('type') != 'command':
                continue
            received.append(message['command'])
            await websocket.send(json.dumps({
                'type': 'commandResponse',
                'id': message['id'],
                'output': '',
                'success': True,
            }))

    async with websockets.serve(handler, '127.0.0.1', 0) as server:
        port = server.sockets[0].getsockname()[1]
        yield f'ws://127.0.0.1:{port}', received


def unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


class TestTerminalRoundtrip:
    """Test whole sessions over a real websocket"""

    async def test_live_session(self, terminal_server, materializer, channel_options):
        url, received = terminal_server
        orchestrator = SessionOrchestrator(
            manager=ConnectionManager(url=url, connect_timeout=2.0, max_retries=0),
            materializer=materializer,
            channel_options=channel_options,
        )

        result = await orchestrator.create_project(RESPONSE)

        assert result.status == MaterializationStatus.LIVE
        assert received[0] == 'mkdir -p landing'
        assert any(c.startswith('mkdir -p landing/frontend/src/components') for c in received)
        assert any(c.endswith('> landing/frontend/src/components/Hero.jsx') for c in received)
        assert any(c.endswith('> landing/backend/src/server.js') for c in received)
        assert not materializer.output_dir.exists()
        assert orchestrator.manager.state.value == 'disconnected'

    async def test_unreachable_server_archives(self, materializer, channel_options):
        orchestrator = SessionOrchestrator(
            manager=ConnectionManager(
                url=f'ws://127.0.0.1:{unused_port()}',
                connect_timeout=1.0,
                max_retries=1,
                base_delay=0.01,
                max_delay=0.02,
            ),
            materializer=materializer,
            channel_options=channel_options,
        )

        result = await orchestrator.create_project(RESPONSE)

        assert result.status == MaterializationStatus.ARCHIVED
        assert result.success
        assert (materializer.output_dir / 'landing.zip').exists()
