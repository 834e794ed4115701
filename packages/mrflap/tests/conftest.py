"""pytest 配置。

说明：
    - 本包采用 src-layout（`packages/mrflap/src/mrflap`），依赖同仓库的 gamekit。
    - 测试运行环境应当“已安装本仓库”，不向 `sys.path` 注入 `src`。
"""
