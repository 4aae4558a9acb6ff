"""Send whole files, picked at random from a directory, over a socket."""

from __future__ import annotations

import os
import random
import stat
from dataclasses import dataclass, field
from typing import Any


@dataclass
class FileEntry:
    """An open regular file ready to be sent."""

    path: str
    size: int
    fd: int


@dataclass
class FileSet:
    """Every readable regular file found under one directory."""

    directory: str
    files: list[FileEntry] = field(default_factory=list)

    @property
    def nfiles(self) -> int:
        return len(self.files)

    def select_file(self) -> int:
        """Index of a randomly chosen file."""
        return random.randrange(len(self.files))

    def close(self) -> None:
        for entry in self.files:
            try:
                os.close(entry.fd)
            except OSError:
                pass
        self.files.clear()


def _fileno(sock: Any) -> int:
    return sock if isinstance(sock, int) else sock.fileno()


def _send_chunked(out_fd: int, entry: FileEntry, chunk_size: int) -> int:
    offset = 0
    while offset < entry.size:
        n = os.sendfile(out_fd, entry.fd, offset, min(chunk_size, entry.size - offset))
        if n <= 0:
            return n if offset == 0 else offset
        offset += n
    return offset


def _send_whole(out_fd: int, entry: FileEntry) -> int:
    offset = 0
    while offset < entry.size:
        n = os.sendfile(out_fd, entry.fd, offset, entry.size - offset)
        if n <= 0:
            break
        offset += n
    return offset


@dataclass
class SendfileRegistry:
    """File sets keyed by the directory they were collected from."""

    sets: dict[str, FileSet] = field(default_factory=dict)

    def init(self, directory: str) -> FileSet:
        """Open every readable regular file under ``directory`` (once per directory)."""
        existing = self.find(directory)
        if existing is not None:
            return existing
        if not os.path.isdir(directory):
            raise FileNotFoundError(directory)
        found: list[FileEntry] = []
        for root, _, names in os.walk(directory):
            for name in names:
                path = os.path.join(root, name)
                try:
                    st = os.stat(path)
                except OSError:
                    continue
                if not stat.S_ISREG(st.st_mode):
                    continue
                try:
                    fd = os.open(path, os.O_RDONLY)
                except OSError:
                    continue
                found.append(FileEntry(path, st.st_size, fd))
        if not found:
            raise ValueError(f"no readable files in {directory}")
        found.reverse()
        fileset = FileSet(directory, found)
        self.sets[directory] = fileset
        return fileset

    def find(self, directory: str) -> FileSet | None:
        """File set collected for ``directory``, if any."""
        return self.sets.get(directory)

    def _require(self, directory: str) -> FileSet:
        fileset = self.find(directory)
        if fileset is None:
            raise KeyError(directory)
        return fileset

    def send(self, sock: Any, directory: str, chunk_size: int = 0) -> int:
        """Send one random file, whole or in ``chunk_size`` pieces; return bytes sent."""
        fileset = self._require(directory)
        entry = fileset.files[fileset.select_file()]
        out_fd = _fileno(sock)
        if chunk_size == 0:
            return os.sendfile(out_fd, entry.fd, 0, entry.size)
        _send_chunked(out_fd, entry, chunk_size)
        return entry.size

    def sendv(self, sock: Any, directory: str, nfiles: int, chunk_size: int = 0) -> int:
        """Send ``nfiles`` random files back to back, or one file chunked; return bytes sent."""
        fileset = self._require(directory)
        out_fd = _fileno(sock)
        if chunk_size != 0:
            entry = fileset.files[fileset.select_file()]
            return _send_chunked(out_fd, entry, chunk_size)
        total = 0
        for _ in range(nfiles):
            entry = fileset.files[fileset.select_file()]
            total += _send_whole(out_fd, entry)
        return total

    def close(self) -> None:
        for fileset in self.sets.values():
            fileset.close()
        self.sets.clear()