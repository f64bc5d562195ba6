from fastapi import Request

from mulapos.services.terminal import PosTerminal


# Dependencia FastAPI: el terminal vive en app.state (uno por aplicación)
def get_terminal(request: Request) -> PosTerminal:
    return request.app.state.terminal
