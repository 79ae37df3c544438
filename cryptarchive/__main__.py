from cryptarchive.cli.main import run

run()
