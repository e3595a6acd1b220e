"""
Constants - Reply texts and protocol tokens.
"""

VERSION = "0.1.0"
APP_NAME = "cqroute"

COMMAND_NOT_FOUND = "指令未找到。"
INSUFFICIENT_ARGUMENTS = "缺少参数，请检查指令语法。"

# Path segments that address an entity rather than an event.
PREFIX_TYPES = ("user", "discuss", "group")

SIGNATURE_HEADER = "X-Signature"
