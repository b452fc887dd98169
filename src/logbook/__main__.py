from logbook.cli import app

app(prog_name="logbook")
