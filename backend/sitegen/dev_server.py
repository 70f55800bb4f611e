"""
Preview dev servers: npm install + `next dev` per project.

Assigned ports are kept in memory and mirrored to ports.json under the
projects directory so a restarted backend can still report them.
"""

import asyncio
import json
import logging
import os
import socket
import threading

from sitegen.config import Settings
from sitegen.errors import DevServerError


logger = logging.getLogger(__name__)

PORTS_FILE_NAME = "ports.json"


def is_port_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


def is_process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class DevServerManager:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._servers: dict[str, dict] = {}
        # Live child processes, kept so they can be reaped and stopped
        self._processes: dict[str, asyncio.subprocess.Process] = {}
        self._lock = threading.Lock()
        self._ports_path = os.path.join(settings.projects_dir, PORTS_FILE_NAME)

    def _load_ports_file(self) -> dict:
        if not os.path.isfile(self._ports_path):
            return {}
        try:
            with open(self._ports_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[dev-server] Ignoring unreadable {self._ports_path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save_ports_file(self, removed: str | None = None) -> None:
        with self._lock:
            data = {**self._load_ports_file(), **self._servers}
        if removed is not None:
            data.pop(removed, None)
        try:
            with open(self._ports_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"[dev-server] Could not write {self._ports_path}: {e}")

    def _forget(self, project_dir: str) -> None:
        with self._lock:
            self._servers.pop(project_dir, None)
            self._processes.pop(project_dir, None)
        self._save_ports_file(removed=project_dir)

    def _used_ports(self) -> set[int]:
        with self._lock:
            ports = {s["port"] for s in self._servers.values()}
        ports.update(s.get("port") for s in self._load_ports_file().values() if isinstance(s, dict))
        return ports

    def find_free_port(self) -> int:
        used = self._used_ports()
        for port in range(self.settings.dev_server_port_min, self.settings.dev_server_port_max + 1):
            if port not in used and is_port_free(port):
                return port
        raise DevServerError(
            f"No free port in {self.settings.dev_server_port_min}-{self.settings.dev_server_port_max}"
        )

    def status(self, project_dir: str) -> dict | None:
        """Port/pid record for a running dev server, or None."""
        with self._lock:
            record = self._servers.get(project_dir)
            proc = self._processes.get(project_dir)
        if proc is not None and proc.returncode is not None:
            logger.info(f"[dev-server] {project_dir} exited with code {proc.returncode}")
            self._forget(project_dir)
            return None
        if record is None:
            stored = self._load_ports_file().get(project_dir)
            record = stored if isinstance(stored, dict) else None
        if record is None or not is_process_alive(record.get("pid", -1)):
            return None
        return {"project_dir": project_dir, "port": record["port"], "pid": record["pid"],
                "url": f"http://localhost:{record['port']}"}

    async def _npm_install(self, project_path: str) -> None:
        logger.info(f"[dev-server] npm install in {project_path}")
        try:
            proc = await asyncio.create_subprocess_exec(
                "npm", "install",
                cwd=project_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DevServerError("npm is not installed") from e
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.settings.npm_install_timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise DevServerError(f"npm install timed out after {self.settings.npm_install_timeout}s") from e
        if proc.returncode != 0:
            raise DevServerError(f"npm install failed: {stderr.decode('utf-8', errors='replace')[-500:]}")

    async def ensure_running(self, project_dir: str) -> dict:
        """Install dependencies if needed and start `next dev` unless one is already running."""
        running = self.status(project_dir)
        if running is not None:
            return {**running, "started": False}

        project_path = os.path.join(self.settings.projects_dir, project_dir)
        if not os.path.isdir(project_path):
            raise DevServerError(f"Project not found: {project_dir}")

        if not os.path.isdir(os.path.join(project_path, "node_modules")):
            await self._npm_install(project_path)

        port = self.find_free_port()
        try:
            proc = await asyncio.create_subprocess_exec(
                "npm", "run", "dev", "--", "-p", str(port),
                cwd=project_path,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise DevServerError("npm is not installed") from e

        with self._lock:
            self._servers[project_dir] = {"port": port, "pid": proc.pid}
            self._processes[project_dir] = proc
        self._save_ports_file()
        logger.info(f"[dev-server] {project_dir} on port {port} (pid {proc.pid})", extra={"project": project_dir})
        return {"project_dir": project_dir, "port": port, "pid": proc.pid,
                "url": f"http://localhost:{port}", "started": True}

    async def stop(self, project_dir: str, timeout: float = 10.0) -> bool:
        """Terminate and reap a dev server started by this manager. False when none is tracked."""
        with self._lock:
            proc = self._processes.get(project_dir)
        if proc is None:
            return False

        if proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[dev-server] {project_dir} ignored SIGTERM, killing")
                proc.kill()
                await proc.wait()

        self._forget(project_dir)
        logger.info(f"[dev-server] Stopped {project_dir}", extra={"project": project_dir})
        return True

    async def stop_all(self) -> None:
        with self._lock:
            project_dirs = list(self._processes)
        for project_dir in project_dirs:
            await self.stop(project_dir)
