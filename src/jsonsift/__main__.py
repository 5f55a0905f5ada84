from jsonsift.cli import app

app(prog_name="jsonsift")
