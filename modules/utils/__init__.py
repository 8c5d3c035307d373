"""Utility subpackage for the kana service modules"""

from .logger import (
	get_logger,
	log_request,
	log_error,
	log_catalog_load,
	log_answer_submission,
	log_session_event,
	set_request_context,
	get_request_context,
)

__all__ = [
	'get_logger',
	'log_request',
	'log_error',
	'log_catalog_load',
	'log_answer_submission',
	'log_session_event',
	'set_request_context',
	'get_request_context',
]
