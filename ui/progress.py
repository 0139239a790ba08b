"""Progress tracking"""

import logging
from abc import ABC, abstractmethod

import click

logger = logging.getLogger(__name__)

STAGE_NAMES = {
    0: "Reception",
    1: "Structure Extraction",
    2: "Upload Validation",
    3: "Row Processing",
    4: "Export",
}


class ProgressTracker(ABC):
    """Abstract progress tracker"""

    @abstractmethod
    def start_stage(self, stage_num: int, stage_name: str):
        """Start a stage"""
        pass

    @abstractmethod
    def complete_stage(self, stage_num: int):
        """Complete a stage"""
        pass

    @abstractmethod
    def fail(self, stage_num: int, message: str):
        """Mark stage as failed"""
        pass


class ConsoleProgress(ProgressTracker):
    """Console-based progress tracker for the CLI"""

    def __init__(self):
        self.completed = set()
        self.current = None

    def start_stage(self, stage_num: int, stage_name: str):
        self.current = stage_num
        click.echo(f"[◉] Stage {stage_num}: {stage_name}...", err=True)

    def complete_stage(self, stage_num: int):
        self.completed.add(stage_num)
        self.current = None
        click.echo(f"[✓] Stage {stage_num}: {STAGE_NAMES.get(stage_num, 'Unknown')} complete", err=True)

    def fail(self, stage_num: int, message: str):
        click.echo(
            f"[✗] Stage {stage_num}: {STAGE_NAMES.get(stage_num, 'Unknown')} failed - {message}",
            err=True,
        )


class LoggingProgress(ProgressTracker):
    """Progress reported through logging, used by the web app"""

    def start_stage(self, stage_num: int, stage_name: str):
        logger.debug("Stage %d: %s started", stage_num, stage_name)

    def complete_stage(self, stage_num: int):
        logger.debug("Stage %d: %s complete", stage_num, STAGE_NAMES.get(stage_num, "Unknown"))

    def fail(self, stage_num: int, message: str):
        logger.warning("Stage %d: %s failed - %s", stage_num, STAGE_NAMES.get(stage_num, "Unknown"), message)
