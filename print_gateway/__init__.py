"""
远程打印网关：通过 CUPS 命令行工具提供打印机查询、作业管理和文件上传预览
"""
