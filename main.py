import uvicorn

from classhub.core.app import create_app
from classhub.core.config import settings

app = create_app()

# Main execution
if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
