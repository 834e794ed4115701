"""pytest 配置。

说明：
    - 本包采用 src-layout（`packages/gamekit/src/gamekit`）。
    - 测试运行环境应当“已安装本包”（例如 `pip install -e .[test]`），不向 `sys.path` 注入 `src`。
"""
