"""统一异常体系

所有业务异常继承 CtiPkgError。CLI 层据此输出友好提示（code + message）。

分类:
  - DependencyError: 拉取 / 解析失败，安装中止且不修改清单与锁文件
  - InstallError:    安装后处理失败（链接重写、缓存重建），不回滚已完成步骤
  - PackError:       打包失败（类型缺失、资源文件缺失、归档写入失败）
  - ValidationError: 校验流程本身无法进行（依赖清单或缓存缺失），
                     与校验发现的违规项（Violation，作为数据返回）区分
  - FileSystemError: 目录替换 / 链接失败
"""

from __future__ import annotations


class CtiPkgError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(CtiPkgError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ManifestError(CtiPkgError):
    """index.yml / index-lock.yml / 字典文件读取或解析失败"""

    code = "MANIFEST_ERROR"


class DependencyError(CtiPkgError):
    """依赖包拉取或解析失败"""

    code = "DEPENDENCY_ERROR"


class InstallError(CtiPkgError):
    """依赖安装后处理失败"""

    code = "INSTALL_ERROR"

    def __init__(self, message: str, dependency: str = "") -> None:
        super().__init__(message)
        self.dependency = dependency


class PackError(CtiPkgError):
    """打包失败"""

    code = "PACK_ERROR"


class ValidationError(CtiPkgError):
    """校验流程无法完成"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class FileSystemError(CtiPkgError):
    """目录替换 / 移动 / 链接失败"""

    code = "FILESYSTEM_ERROR"

    def __init__(self, message: str, src: str = "", dst: str = "") -> None:
        super().__init__(message)
        self.src = src
        self.dst = dst
