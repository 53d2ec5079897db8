from bomwatch.cli import run

run()
