"""
ISO -> XISO conversion jobs.

A job stages a private copy of the source image, runs the external converter
on it and copies the result next to the source. Whatever happens, scratch
files are removed and a failed job leaves no output behind.
"""

import logging
import os
import shutil
import subprocess
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .handles import FolderHandle
from .models import ConversionJob, ConversionPlan, GameRecord, JobState
from .monitor import monitor_action, start_monitored_thread
from .shared_config import STAGING_DIR, XISO_SUFFIX

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1024 * 1024

MSG_RESOLVE_FAILED = "Could not find the game's folder in the library"
MSG_CREATE_OUTPUT_FAILED = "Could not create the output file"
MSG_OUTPUT_EXISTS = "{name} already exists; confirm overwrite to replace it"
MSG_COPY_INPUT_FAILED = "Could not copy the source image for conversion"
MSG_EMPTY_OUTPUT = "Converted image was empty"
MSG_COPY_OUTPUT_FAILED = "Could not write the converted image"


class ConversionError(Exception):
    pass


class ConversionBusyError(ConversionError):
    """Another conversion is still running"""


class ConverterUnavailableError(ConversionError):
    """No usable converter is installed"""


class Converter(ABC):
    """External ISO -> XISO converter"""

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def convert(self, input_path: str, output_path: str) -> Optional[str]:
        """Convert ``input_path`` into ``output_path``. Returns an error message or None."""


class FunctionConverter(Converter):
    """Wraps a plain ``(input_path, output_path) -> error | None`` function"""

    def __init__(self, func: Callable[[str, str], Optional[str]], available: bool = True):
        self._func = func
        self._available = available

    def is_available(self) -> bool:
        return self._available

    def convert(self, input_path: str, output_path: str) -> Optional[str]:
        return self._func(input_path, output_path)


class ExtractXisoConverter(Converter):
    """Runs the extract-xiso tool in rewrite mode"""

    BINARY_NAMES = ('extract-xiso', 'extract-xiso.exe')

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    def resolve_binary(self) -> Optional[str]:
        configured = (self.binary or '').strip()
        if configured:
            return configured if os.path.isfile(configured) else shutil.which(configured)
        for name in self.BINARY_NAMES:
            resolved = shutil.which(name)
            if resolved:
                return resolved
        return None

    def is_available(self) -> bool:
        return self.resolve_binary() is not None

    def convert(self, input_path: str, output_path: str) -> Optional[str]:
        binary = self.resolve_binary()
        if not binary:
            return "extract-xiso not found"

        creationflags = 0
        if os.name == "nt" and hasattr(subprocess, "CREATE_NO_WINDOW"):
            creationflags = int(getattr(subprocess, "CREATE_NO_WINDOW"))

        out_dir = tempfile.mkdtemp(prefix="rewrite-", dir=os.path.dirname(output_path) or None)
        try:
            cmd = [binary, '-r', '-d', out_dir, input_path]
            logger.info("Running %s", ' '.join(cmd))
            try:
                proc = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    timeout=self.timeout,
                    creationflags=creationflags,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                return f"extract-xiso failed: {e}"

            if proc.returncode != 0:
                lines = [line for line in (proc.stdout or '').splitlines() if line.strip()]
                detail = lines[-1].strip() if lines else f"exit code {proc.returncode}"
                return f"extract-xiso failed: {detail}"

            produced = os.path.join(out_dir, os.path.basename(input_path))
            if not os.path.isfile(produced):
                return "extract-xiso did not produce an image"
            shutil.move(produced, output_path)
            return None
        finally:
            shutil.rmtree(out_dir, ignore_errors=True)


def is_convertible_iso(record: GameRecord) -> bool:
    lower = record.relative_path.lower()
    return lower.endswith('.iso') and not lower.endswith(XISO_SUFFIX)


def build_xiso_file_name(source_name: str) -> str:
    """ "Game.iso" -> "Game.xiso.iso" """
    stem = source_name[:-4] if source_name.lower().endswith('.iso') else source_name
    return f"{stem}{XISO_SUFFIX}"


def resolve_parent_directory(root: FolderHandle, relative_path: str) -> Optional[FolderHandle]:
    """Walk ``relative_path`` down from ``root`` and return the file's folder."""
    parts = [part.strip() for part in relative_path.split('/')]
    parts = [part for part in parts if part]
    current = root
    for part in parts[:-1]:
        child = current.find_child(part)
        if child is None or not child.is_dir():
            return None
        current = child
    return current


class ConversionOrchestrator:
    """
    Runs one conversion at a time.

    convert() runs on the calling thread, start() on a background thread.
    Both refuse to run while another job holds the busy flag.
    """

    def __init__(self, root: FolderHandle, converter: Optional[Converter],
                 staging_dir: str = STAGING_DIR,
                 busy_lock: Optional[threading.Lock] = None):
        """
        Args:
            root: Library root the records are relative to
            converter: Converter to run, or None when none is installed
            staging_dir: Folder for scratch copies
            busy_lock: Gate shared by every orchestrator of one library
        """
        self.root = root
        self.converter = converter
        self.staging_dir = staging_dir
        self.current_job: Optional[ConversionJob] = None
        self._busy = busy_lock if busy_lock is not None else threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def is_available(self) -> bool:
        return self.converter is not None and self.converter.is_available()

    def plan(self, record: GameRecord) -> ConversionPlan:
        """Work out the output name and whether it would overwrite something."""
        parent = resolve_parent_directory(self.root, record.relative_path)
        if parent is None:
            raise ConversionError(MSG_RESOLVE_FAILED)
        output_name = build_xiso_file_name(record.filename)
        existing = parent.find_child(output_name)
        return ConversionPlan(
            record=record,
            output_name=output_name,
            output_exists=existing is not None,
            output_is_dir=existing is not None and existing.is_dir(),
        )

    def convert(self, record: GameRecord, overwrite: bool = False) -> Optional[str]:
        """
        Convert one record now.

        Returns:
            None on success, otherwise an error message

        Raises:
            ConverterUnavailableError: no converter installed
            ConversionBusyError: another job is running
        """
        job = self._claim(record, overwrite)
        try:
            return self._run_to_end(job)
        finally:
            self._busy.release()

    def start(self, record: GameRecord, overwrite: bool = False,
              on_done: Optional[Callable[[ConversionJob], None]] = None
              ) -> Optional[threading.Thread]:
        """Convert in the background. Returns None, without side effects, when busy."""
        try:
            job = self._claim(record, overwrite)
        except ConversionBusyError:
            return None

        def _worker():
            try:
                self._run_to_end(job)
            finally:
                self._busy.release()
            if on_done:
                on_done(job)

        try:
            return start_monitored_thread(_worker, name=f"xiso-convert-{job.output_name}")
        except RuntimeError:
            self._busy.release()
            raise

    def _claim(self, record: GameRecord, overwrite: bool) -> ConversionJob:
        if not self.is_available():
            raise ConverterUnavailableError("ISO conversion is not available")
        if not self._busy.acquire(blocking=False):
            raise ConversionBusyError("A conversion is already running")
        job = ConversionJob(
            record=record,
            output_name=build_xiso_file_name(record.filename),
            overwrite=overwrite,
        )
        self.current_job = job
        return job

    def _run_to_end(self, job: ConversionJob) -> Optional[str]:
        """Run ``job`` and always leave it DONE or FAILED."""
        try:
            return self._run(job)
        except Exception as e:
            logger.exception("Conversion of %s crashed", job.record.relative_path)
            if not job.finished:
                return self._fail(job, f"Conversion error: {e}")
            return job.error

    def _fail(self, job: ConversionJob, message: str) -> str:
        job.state = JobState.FAILED
        job.error = message
        logger.warning("Conversion of %s failed: %s", job.record.relative_path, message)
        return message

    def _run(self, job: ConversionJob) -> Optional[str]:
        monitor_action(f"convert: {job.record.relative_path} -> {job.output_name}")
        job.state = JobState.STAGING

        parent = resolve_parent_directory(self.root, job.record.relative_path)
        if parent is None:
            return self._fail(job, MSG_RESOLVE_FAILED)

        existing = parent.find_child(job.output_name)
        if existing is not None:
            if existing.is_dir():
                return self._fail(job, MSG_CREATE_OUTPUT_FAILED)
            if not job.overwrite:
                return self._fail(job, MSG_OUTPUT_EXISTS.format(name=job.output_name))
            if not existing.delete():
                return self._fail(job, MSG_CREATE_OUTPUT_FAILED)

        # created up front so a read-only folder fails before the slow part
        output = parent.create_file(job.output_name)
        if output is None:
            return self._fail(job, MSG_CREATE_OUTPUT_FAILED)

        try:
            os.makedirs(self.staging_dir, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create staging folder %s: %s", self.staging_dir, e)
            output.delete()
            return self._fail(job, MSG_CREATE_OUTPUT_FAILED)

        token = uuid.uuid4().hex
        input_temp = os.path.join(self.staging_dir, f"input-{token}.iso")
        output_temp = os.path.join(self.staging_dir, f"output-{token}{XISO_SUFFIX}")
        success = False
        try:
            if not self._copy_to_file(job.record.locator, input_temp):
                return self._fail(job, MSG_COPY_INPUT_FAILED)

            job.state = JobState.CONVERTING
            try:
                error = self.converter.convert(input_temp, output_temp)
            except Exception as e:
                logger.exception("Converter crashed on %s", job.record.relative_path)
                error = f"Converter error: {e}"
            if error and error.strip():
                return self._fail(job, error.strip())

            job.state = JobState.VERIFYING
            if not os.path.isfile(output_temp) or os.path.getsize(output_temp) <= 0:
                return self._fail(job, MSG_EMPTY_OUTPUT)

            job.state = JobState.COMMITTING
            if not self._copy_to_handle(output_temp, output):
                return self._fail(job, MSG_COPY_OUTPUT_FAILED)

            success = True
            job.state = JobState.DONE
            logger.info("Converted %s -> %s", job.record.relative_path, job.output_name)
            return None
        finally:
            if not success:
                output.delete()
            for path in (input_temp, output_temp):
                self._remove_scratch(path)

    @staticmethod
    def _copy_to_file(source: FolderHandle, target: str) -> bool:
        try:
            with source.open_read() as src, open(target, 'wb') as dst:
                shutil.copyfileobj(src, dst, BUFFER_SIZE)
            return True
        except OSError as e:
            logger.warning("Staging copy failed: %s", e)
            return False

    @staticmethod
    def _copy_to_handle(source: str, target: FolderHandle) -> bool:
        try:
            with open(source, 'rb') as src, target.open_write() as dst:
                shutil.copyfileobj(src, dst, BUFFER_SIZE)
            return True
        except OSError as e:
            logger.warning("Writing converted image failed: %s", e)
            return False

    @staticmethod
    def _remove_scratch(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove scratch file %s: %s", path, e)
