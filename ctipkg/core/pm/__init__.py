"""包管理流水线

- installer.py:  依赖安装与清单/锁文件协调
- packer.py:     bundle.zip 打包
- validation.py: 本包 + 已锁定依赖的联合校验
"""

from ctipkg.core.pm.installer import Installer
from ctipkg.core.pm.packer import BundlePacker
from ctipkg.core.pm.validation import ValidationOrchestrator

__all__ = [
    "Installer",
    "BundlePacker",
    "ValidationOrchestrator",
]
