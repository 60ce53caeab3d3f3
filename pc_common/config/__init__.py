"""Configuration helpers for pc_common."""

from .env import parse_bool_env, parse_float_env, parse_int_env, parse_list_env

__all__ = [
    "parse_bool_env",
    "parse_float_env",
    "parse_int_env",
    "parse_list_env",
]
