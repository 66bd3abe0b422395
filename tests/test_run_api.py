import sys
import os

# Add scripts to path for the runner module
scripts_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'scripts')
if scripts_path not in sys.path:
    sys.path.insert(0, scripts_path)

from run_api import uvicorn_command


def test_reload_is_off_by_default():
    command = uvicorn_command({}, [])

    assert "--reload" not in command
    assert command[-4:] == ["--host", "127.0.0.1", "--port", "8000"]


def test_reload_on_request():
    assert "--reload" in uvicorn_command({}, ["--reload"])
    assert "--reload" in uvicorn_command({"PROPOSAL_API_RELOAD": "true"}, [])


def test_host_and_port_from_environment():
    command = uvicorn_command({"PROPOSAL_API_HOST": "0.0.0.0", "PROPOSAL_API_PORT": "9000"}, [])
    assert command[command.index("--host") + 1] == "0.0.0.0"
    assert command[command.index("--port") + 1] == "9000"
