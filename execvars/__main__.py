from execvars.cli.main import app

app(prog_name="execvars")
