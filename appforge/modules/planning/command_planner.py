"""
Command Planner
Translates a ProjectConfiguration into the ordered shell commands that
scaffold the project on the execution endpoint.

Every command is a self-contained subshell relative to the endpoint's working
directory and uses idempotent idioms (mkdir -p, [ -f x ] || init), so sending
the same plan twice is safe.
"""

import shlex
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple, Union

from appforge.core.exceptions import PlanningUnsupportedError
from appforge.core.logging_config import logger
from appforge.schemas.project import BackendConfig, FrontendConfig, ProjectConfiguration


@dataclass(frozen=True)
class PackageSet:
    """Runtime packages plus the type packages needed for a TypeScript build"""
    packages: Tuple[str, ...] = ()
    type_packages: Tuple[str, ...] = ()


FRONTEND_FRAMEWORKS = ("react", "nextjs")
FRONTEND_FRAMEWORK_ALIASES = {
    "reactjs": "react", "react.js": "react", "cra": "react", "create-react-app": "react",
    "next": "nextjs", "next.js": "nextjs",
}

STYLINGS = ("tailwind", "css")
STYLING_ALIASES = {"tailwindcss": "tailwind", "plain": "css", "vanilla": "css", "none": "css"}

BACKEND_FRAMEWORKS: Dict[str, PackageSet] = {
    "express": PackageSet(("express", "cors", "dotenv"), ("@types/express", "@types/cors")),
    "fastify": PackageSet(("fastify", "@fastify/cors", "dotenv")),
    "koa": PackageSet(
        ("koa", "@koa/router", "@koa/cors", "koa-bodyparser", "dotenv"),
        ("@types/koa", "@types/koa__router", "@types/koa__cors", "@types/koa-bodyparser"),
    ),
}
BACKEND_FRAMEWORK_ALIASES = {
    "express.js": "express", "expressjs": "express", "node": "express", "nodejs": "express",
    "fastify.js": "fastify", "koa.js": "koa", "koajs": "koa",
}

DATABASES: Dict[str, PackageSet] = {
    "mongodb": PackageSet(("mongoose",)),
    "postgres": PackageSet(("pg",), ("@types/pg",)),
    "mysql": PackageSet(("mysql2",)),
    "sqlite": PackageSet(("better-sqlite3",), ("@types/better-sqlite3",)),
    "supabase": PackageSet(("@supabase/supabase-js",)),
    "none": PackageSet(),
}
DATABASE_ALIASES = {
    "mongo": "mongodb", "postgresql": "postgres", "pg": "postgres",
    "sqlite3": "sqlite", "": "none", "no": "none",
}

TS_TOOLCHAIN = ("typescript", "@types/node", "ts-node-dev")


def _q(path: str) -> str:
    return shlex.quote(path)


def _in_dir(directory: str, command: str) -> str:
    return f"(cd {_q(directory)} && {command})"


def _unless_exists(marker: str, command: str) -> str:
    return f"([ -f {_q(marker)} ] || {command})"


class CommandPlanner:
    """Deterministic configuration -> command sequence translation"""

    def plan(self, config: ProjectConfiguration) -> List[str]:
        root = config.name
        commands = [f"mkdir -p {_q(root)}"]

        if config.has_frontend:
            commands.extend(self.frontend_commands(config))
        if config.has_backend:
            commands.extend(self.backend_commands(config))

        logger.debug(f"[CommandPlanner] Planned {len(commands)} command(s) for {config.type} project '{root}'")
        return commands

    # ------------------------------------------------------------------
    # Frontend
    # ------------------------------------------------------------------

    def frontend_commands(self, config: ProjectConfiguration) -> List[str]:
        frontend = config.frontend or FrontendConfig()
        framework = self._resolve("frontend framework", frontend.framework,
                                  FRONTEND_FRAMEWORKS, FRONTEND_FRAMEWORK_ALIASES, "react")
        styling = self._resolve("styling", frontend.styling, STYLINGS, STYLING_ALIASES, "css")

        root = config.name
        frontend_dir = f"{root}/frontend"
        commands: List[str] = []

        if framework == "nextjs":
            flags = [
                "--typescript" if config.is_typescript else "--js",
                "--tailwind" if styling == "tailwind" else "--no-tailwind",
                "--eslint",
                "--app",
                "--use-npm",
            ]
            scaffold = f"npx create-next-app@latest frontend {' '.join(flags)}"
            commands.append(_in_dir(root, _unless_exists("frontend/package.json", scaffold)))
        else:
            scaffold = "npx create-react-app frontend"
            if config.is_typescript:
                scaffold += " --template typescript"
            commands.append(_in_dir(root, _unless_exists("frontend/package.json", scaffold)))
            commands.append(_in_dir(frontend_dir, "npm install react-router-dom"))

            if styling == "tailwind":
                commands.append(_in_dir(frontend_dir, "npm install -D tailwindcss postcss autoprefixer"))
                commands.append(_in_dir(frontend_dir, _unless_exists("tailwind.config.js", "npx tailwindcss init -p")))

        commands.append(
            "mkdir -p " + " ".join(
                _q(f"{frontend_dir}/{sub}") for sub in ("src/components", "src/pages", "public")
            )
        )
        return commands

    # ------------------------------------------------------------------
    # Backend
    # ------------------------------------------------------------------

    def backend_commands(self, config: ProjectConfiguration) -> List[str]:
        backend = config.backend or BackendConfig()
        framework = self._resolve("backend framework", backend.framework,
                                  BACKEND_FRAMEWORKS, BACKEND_FRAMEWORK_ALIASES, "express")
        database = self._resolve("database", backend.database, DATABASES, DATABASE_ALIASES, "none")

        backend_dir = f"{config.name}/backend" if config.is_fullstack else config.name
        stack = BACKEND_FRAMEWORKS[framework]
        db = DATABASES[database]

        commands = [
            f"mkdir -p {_q(backend_dir)}",
            _in_dir(backend_dir, _unless_exists("package.json", "npm init -y")),
            _in_dir(backend_dir, "npm install " + " ".join(stack.packages + db.packages)),
        ]

        if config.is_typescript:
            dev_packages = TS_TOOLCHAIN + stack.type_packages + db.type_packages
            commands.append(_in_dir(backend_dir, "npm install -D " + " ".join(dev_packages)))
            commands.append(_in_dir(backend_dir, _unless_exists("tsconfig.json", "npx tsc --init")))

        commands.append(
            "mkdir -p " + " ".join(
                _q(f"{backend_dir}/src/{sub}") for sub in ("routes", "controllers", "models", "services")
            )
        )
        return commands

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(
        self,
        kind: str,
        value: str,
        known: Union[Tuple[str, ...], Mapping[str, PackageSet]],
        aliases: Mapping[str, str],
        fallback: str
    ) -> str:
        """Map a configured value onto a known table entry, degrading when unknown"""
        try:
            return self._lookup(kind, value, known, aliases, fallback)
        except PlanningUnsupportedError as e:
            logger.warning(f"[CommandPlanner] {e.message}")
            return fallback

    @staticmethod
    def _lookup(kind, value, known, aliases, fallback) -> str:
        token = (value or "").strip().lower()
        token = aliases.get(token, token)
        if token in known:
            return token
        raise PlanningUnsupportedError(kind, value, fallback)


# Singleton instance
command_planner = CommandPlanner()


def plan(config: ProjectConfiguration) -> List[str]:
    return command_planner.plan(config)
