"""
clang driver module

Runs clang as a subprocess to get the JSON AST dump and the macro
definition dump for a stub C source.
"""

import json
import logging
import subprocess
from typing import Sequence

from .errors import TranslationError

logger = logging.getLogger(__name__)


class ClangRunner:
    """Thin wrapper around the clang executable"""

    def __init__(self, clang: str = 'clang'):
        self.clang = clang

    def ast_dump(self, source_path: str, args: Sequence[str]) -> dict:
        """Run clang to get the AST dump of source_path"""
        cmd = [self.clang, '-x', 'c', '-fsyntax-only', '-Xclang', '-ast-dump=json',
               *args, source_path]
        output = self._run(cmd)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise TranslationError(f'clang produced an unreadable AST dump: {e}') from e

    def macro_dump(self, source_path: str, args: Sequence[str]) -> str:
        """Run the preprocessor, keeping #define lines in place"""
        cmd = [self.clang, '-x', 'c', '-E', '-dD', *args, source_path]
        return self._run(cmd)

    def _run(self, cmd: list[str]) -> str:
        logger.debug('running %s', ' '.join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True,
                                    encoding='utf-8', errors='replace')
        except OSError as e:
            raise TranslationError(f'unable to run {self.clang}: {e}') from e
        if result.stderr:
            for line in result.stderr.splitlines():
                if 'warning:' in line:
                    logger.debug('%s', line.strip())
        if result.returncode != 0:
            raise TranslationError(
                f'{self.clang} exited with status {result.returncode}:\n{result.stderr.strip()}')
        return result.stdout
