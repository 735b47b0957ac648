"""
auth/passwords.py -- bcrypt password hashing with bounded concurrency.

Security design decisions:
  bcrypt directly (no passlib wrapper). The salt is random per hash and is
  embedded in the output string together with the algorithm tag ("$2b$") and
  the cost factor, so nothing else needs to be stored. bcrypt.checkpw()
  compares in constant time.

  Work factor is configurable (BCRYPT_ROUNDS). needs_rehash() reports hashes
  made with a different cost so the login path can upgrade them in place.

  Hashing is CPU-bound. A BoundedSemaphore caps how many hash/verify calls
  run at once across all request threads, leaving the rest of the threadpool
  free to serve other requests under a login flood. bcrypt releases the GIL
  while hashing, so the permitted calls do run in parallel.

  _dummy_hash enables timing equalization: the engine verifies against it
  when an email is unknown, so response time does not reveal whether an
  account exists [C1].

  bcrypt only reads the first 72 bytes of its input. The registration policy
  rejects longer passwords; verify() treats over-long input as a mismatch.
"""

from __future__ import annotations

import logging
import threading

import bcrypt

logger = logging.getLogger("turnstile.auth.passwords")

# bcrypt input limit in bytes.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = 12, max_concurrency: int = 4) -> None:
        self.rounds = rounds
        self._slots = threading.BoundedSemaphore(max_concurrency)
        self._dummy_hash: str | None = None
        self._dummy_lock = threading.Lock()

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of plain."""
        with self._slots:
            return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed. Malformed hashes never match."""
        with self._slots:
            try:
                return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
            except ValueError:
                return False

    def needs_rehash(self, hashed: str) -> bool:
        """True when hashed was produced with a different cost factor."""
        try:
            return int(hashed.split("$")[2]) != self.rounds
        except (IndexError, ValueError):
            return True

    def verify_dummy(self, plain: str) -> None:
        """Spend one verify's worth of time against a throwaway hash [C1]."""
        if self._dummy_hash is None:
            with self._dummy_lock:
                if self._dummy_hash is None:
                    self._dummy_hash = self.hash("turnstile_timing_dummy")
        self.verify(plain, self._dummy_hash)
