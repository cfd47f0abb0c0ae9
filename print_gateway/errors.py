"""
异常定义

所有对外暴露的异常都继承 PrintGatewayError，路由层据此生成 JSON 错误响应。
"""
from typing import Optional


class PrintGatewayError(Exception):
    status_code = 500
    kind = 'error'

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {
            'success': False,
            'error': self.message or self.__class__.__name__,
            'kind': self.kind
        }


class ValidationError(PrintGatewayError):
    """打印机名、作业ID或打印参数不合法（在调用任何外部命令之前拒绝）"""
    status_code = 400
    kind = 'validation'


class InvalidTransition(ValidationError):
    """作业当前状态不允许该操作"""
    status_code = 409
    kind = 'invalid_transition'


class NotFoundError(PrintGatewayError):
    status_code = 404
    kind = 'not_found'


class ExecutionError(PrintGatewayError):
    """外部命令执行失败"""
    status_code = 502
    kind = 'execution'

    def __init__(self, message: str, command: str = '', stderr: str = ''):
        super().__init__(message)
        self.command = command
        self.stderr = stderr or ''

    def to_dict(self):
        data = super().to_dict()
        if self.stderr:
            data['stderr'] = self.stderr
        return data


class CommandFailed(ExecutionError):
    kind = 'exit_code'

    def __init__(self, message: str, command: str = '', stderr: str = '', exit_code: Optional[int] = None):
        super().__init__(message, command, stderr)
        self.exit_code = exit_code


class CommandTimeout(ExecutionError):
    status_code = 504
    kind = 'timeout'

    def __init__(self, message: str, command: str = '', stderr: str = '', timeout: float = 0):
        super().__init__(message, command, stderr)
        self.timeout = timeout


class CommandUnavailable(ExecutionError):
    """命令无法启动（未安装或系统错误）"""
    status_code = 503
    kind = 'spawn_failure'


class ParseError(PrintGatewayError):
    status_code = 502
    kind = 'parse'


class SubmissionError(ParseError):
    """lp 执行成功但输出中没有作业ID"""
    kind = 'submission'


class SubmissionOutcomeUnknown(PrintGatewayError):
    """提交超时：作业可能已进入队列，也可能没有，需要人工确认"""
    status_code = 504
    kind = 'unknown_outcome'

    def __init__(self, message: str = '', printer_name: str = ''):
        super().__init__(message or 'Submission timed out: unknown outcome, verify the queue manually')
        self.printer_name = printer_name


class PreviewGenerationFailed(PrintGatewayError):
    status_code = 500
    kind = 'preview_failed'
