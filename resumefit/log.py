"""
resumefit/log.py

Loguru logging for resumefit with an automatic [resumefit] prefix.
Library modules log through the helpers below and never add handlers;
only the CLI calls setup_logger().
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONTEXT_PREFIX = "[resumefit]"

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {message}"
CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | {message}"


def setup_logger(level: str = "INFO", log_file: Optional[Path] = None) -> Optional[Path]:
    """
    Replace loguru's default handler with a colorized stderr handler and,
    optionally, a DEBUG-level file handler.

    Returns the log file path when one was configured.
    """
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level.upper(), colorize=True)
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, format=FILE_FORMAT, level="DEBUG", encoding="utf-8")
    return log_file


def log_info(message: str) -> None:
    logger.info(f"{CONTEXT_PREFIX} {message}")


def log_success(message: str) -> None:
    logger.success(f"{CONTEXT_PREFIX} {message}")


def log_warning(message: str) -> None:
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def log_error(message: str) -> None:
    logger.error(f"{CONTEXT_PREFIX} {message}")


def log_debug(message: str) -> None:
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# Run-level helpers


def log_run_start(job_id: str, resume_id: str, target_score: float, max_iterations: int) -> None:
    log_info(f"Optimizing resume {resume_id} for job {job_id}")
    log_debug(f"  target={target_score:.2f} max_iterations={max_iterations}")


def log_round(round_no: int, score: float, gaps: int, strengths: int) -> None:
    log_info(f"Round {round_no}: score {score:.3f} ({gaps} gaps, {strengths} strengths)")


def log_termination(reason: str, rounds: int, final_score: float, error: Optional[str] = None) -> None:
    message = f"Run finished: {reason} after {rounds} round(s), final score {final_score:.3f}"
    if reason == "target_reached":
        log_success(message)
    elif error:
        log_error(f"{message} ({error})")
    else:
        log_info(message)
