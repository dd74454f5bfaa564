"""ctipkg - CTI 包管理工具

依赖安装 / 锁定 / 校验 / 打包。
"""

__version__ = "0.1.0"
