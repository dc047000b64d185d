"""Target database connection parameters shared by execution backends."""

from __future__ import annotations

from dataclasses import dataclass

from sql_dump_loader.domain.job_states import DatabaseEngine


@dataclass(slots=True, frozen=True)
class DatabaseConnectionSettings:
    """Connection parameters for the target database."""

    host: str
    port: int
    user: str | None = None
    password: str | None = None
    database: str | None = None
    ssl_self_signed: bool = False
    engine: DatabaseEngine = DatabaseEngine.POSTGRES

    def client_environment(self) -> dict[str, str]:
        """Return the variables the engine's command-line client reads."""

        if self.engine is DatabaseEngine.MYSQL:
            return self._mysql_environment()
        return self._libpq_environment()

    def client_arguments(self) -> list[str]:
        """Return arguments the client only accepts on its command line."""

        if self.engine is not DatabaseEngine.MYSQL:
            return []
        arguments: list[str] = []
        if self.user is not None:
            arguments.append(f"--user={self.user}")
        if self.ssl_self_signed:
            arguments.append("--ssl-mode=REQUIRED")
        if self.database is not None:
            arguments.append(self.database)
        return arguments

    def _libpq_environment(self) -> dict[str, str]:
        env = {"PGHOST": self.host, "PGPORT": str(self.port)}
        if self.user is not None:
            env["PGUSER"] = self.user
        if self.password is not None:
            env["PGPASSWORD"] = self.password
        if self.database is not None:
            env["PGDATABASE"] = self.database
        if self.ssl_self_signed:
            # require = encrypt without verifying the server certificate.
            env["PGSSLMODE"] = "require"
        return env

    def _mysql_environment(self) -> dict[str, str]:
        # mysql has no user or database variables; see client_arguments().
        env = {"MYSQL_HOST": self.host, "MYSQL_TCP_PORT": str(self.port)}
        if self.password is not None:
            env["MYSQL_PWD"] = self.password
        return env


__all__ = ["DatabaseConnectionSettings"]
