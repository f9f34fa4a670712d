from lighthouse_power.cli import app

app(prog_name="lighthouse-power")
