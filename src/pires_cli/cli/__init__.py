"""
pires-cli のコマンドライン層。エントリポイントは pires_cli.cli.main:main。
"""
