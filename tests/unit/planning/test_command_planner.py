"""
Unit Tests for CommandPlanner

Tests configuration -> scaffolding command translation.
"""
import pytest

from appforge.modules.planning.command_planner import CommandPlanner
from appforge.schemas.project import ProjectConfiguration


@pytest.fixture
def planner() -> CommandPlanner:
    return CommandPlanner()


def make_config(**kwargs) -> ProjectConfiguration:
    kwargs.setdefault('name', 'demo')
    return ProjectConfiguration(**kwargs)


class TestFrontendPlan:
    """Test frontend scaffolding commands"""

    def test_react_typescript_tailwind(self, planner, frontend_config):
        """Test the default frontend stack"""
        commands = planner.plan(frontend_config)

        assert commands == [
            'mkdir -p demo',
            '(cd demo && ([ -f frontend/package.json ] || npx create-react-app frontend --template typescript))',
            '(cd demo/frontend && npm install react-router-dom)',
            '(cd demo/frontend && npm install -D tailwindcss postcss autoprefixer)',
            '(cd demo/frontend && ([ -f tailwind.config.js ] || npx tailwindcss init -p))',
            'mkdir -p demo/frontend/src/components demo/frontend/src/pages demo/frontend/public',
        ]

    def test_react_javascript_css(self, planner):
        """Test JavaScript without tailwind"""
        config = make_config(type='frontend', language='javascript', frontend={'styling': 'css'})

        commands = planner.plan(config)

        assert '(cd demo && ([ -f frontend/package.json ] || npx create-react-app frontend))' in commands
        assert not any('tailwind' in command for command in commands)

    def test_nextjs(self, planner):
        """Test Next.js uses create-next-app flags instead of separate installs"""
        config = make_config(type='frontend', frontend={'framework': 'Next.js'})

        commands = planner.plan(config)

        assert commands[1] == (
            '(cd demo && ([ -f frontend/package.json ] || npx create-next-app@latest frontend '
            '--typescript --tailwind --eslint --app --use-npm))'
        )
        assert not any('react-router-dom' in command for command in commands)

    def test_unknown_framework_degrades_to_react(self, planner):
        """Test unsupported frameworks fall back instead of failing"""
        config = make_config(type='frontend', frontend={'framework': 'svelte'})

        assert 'create-react-app' in planner.plan(config)[1]


class TestBackendPlan:
    """Test backend scaffolding commands"""

    def test_backend_only_uses_project_root(self, planner):
        """Test backend-only projects scaffold in the project directory"""
        config = make_config(type='backend', language='javascript')

        commands = planner.plan(config)

        assert commands == [
            'mkdir -p demo',
            'mkdir -p demo',
            '(cd demo && ([ -f package.json ] || npm init -y))',
            '(cd demo && npm install express cors dotenv)',
            'mkdir -p demo/src/routes demo/src/controllers demo/src/models demo/src/services',
        ]

    def test_typescript_toolchain_and_database_types(self, planner):
        """Test TypeScript dev dependencies include database types"""
        config = make_config(type='backend', backend={'database': 'PostgreSQL'})

        commands = planner.plan(config)

        assert '(cd demo && npm install express cors dotenv pg)' in commands
        assert (
            '(cd demo && npm install -D typescript @types/node ts-node-dev '
            '@types/express @types/cors @types/pg)'
        ) in commands
        assert '(cd demo && ([ -f tsconfig.json ] || npx tsc --init))' in commands

    @pytest.mark.parametrize('database,package', [
        ('mongo', 'mongoose'),
        ('mongodb', 'mongoose'),
        ('mysql', 'mysql2'),
        ('supabase', '@supabase/supabase-js'),
    ])
    def test_database_packages(self, planner, database, package):
        config = make_config(type='backend', language='javascript', backend={'database': database})

        assert f'(cd demo && npm install express cors dotenv {package})' in planner.plan(config)

    def test_unknown_database_degrades_to_none(self, planner):
        config = make_config(type='backend', language='javascript', backend={'database': 'cassandra'})

        assert '(cd demo && npm install express cors dotenv)' in planner.plan(config)

    def test_framework_alias(self, planner):
        config = make_config(type='backend', language='javascript', backend={'framework': 'Express.js'})

        assert '(cd demo && npm install express cors dotenv)' in planner.plan(config)


class TestFullstackPlan:
    """Test combined plans"""

    def test_frontend_before_backend(self, planner, fullstack_config):
        """Test frontend commands precede backend commands"""
        commands = planner.plan(fullstack_config)

        frontend_index = next(i for i, c in enumerate(commands) if 'create-react-app' in c)
        backend_index = commands.index('(cd demo/backend && ([ -f package.json ] || npm init -y))')

        assert commands[0] == 'mkdir -p demo'
        assert frontend_index < backend_index
        assert commands[-1] == (
            'mkdir -p demo/backend/src/routes demo/backend/src/controllers '
            'demo/backend/src/models demo/backend/src/services'
        )

    def test_plan_is_deterministic(self, planner, fullstack_config):
        assert planner.plan(fullstack_config) == planner.plan(fullstack_config)

    def test_commands_are_idempotent_idioms(self, planner, fullstack_config):
        """Test every command is safe to repeat"""
        for command in planner.plan(fullstack_config):
            assert command.startswith(('mkdir -p ', '(cd '))

    def test_project_name_is_quoted_safe(self, planner):
        """Test names are slugified before reaching the shell"""
        config = make_config(type='frontend', name='My App; rm -rf /')

        assert planner.plan(config)[0] == 'mkdir -p my-app-rm-rf'
