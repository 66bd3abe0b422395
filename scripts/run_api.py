import subprocess
import sys
import os
from pathlib import Path


def uvicorn_command(env: dict, argv: list) -> list:
    """uvicorn invocation for the proposal API; auto-reload only on request."""
    command = [
        sys.executable, "-m", "uvicorn",
        "proposal_engine.api.main:app",
        "--host", env.get("PROPOSAL_API_HOST", "127.0.0.1"),
        "--port", env.get("PROPOSAL_API_PORT", "8000"),
    ]
    if "--reload" in argv or env.get("PROPOSAL_API_RELOAD", "").lower() in ("1", "true", "yes"):
        command.append("--reload")
    return command


def main():
    project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    env = os.environ.copy()
    src_path = str(project_root / "src")
    if "PYTHONPATH" in env:
        env["PYTHONPATH"] = f"{src_path}{os.pathsep}{env['PYTHONPATH']}"
    else:
        env["PYTHONPATH"] = src_path

    command = uvicorn_command(env, sys.argv[1:])
    reload_note = " (auto-reload)" if "--reload" in command else ""
    print(f"Starting Proposal Engine API on {command[5]}:{command[7]}{reload_note}...")
    try:
        subprocess.run(command, env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
