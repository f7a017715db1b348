import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from gitgrub.db.database import Base, get_db_engine

# Importante: registrar modelos ANTES de create_all
from gitgrub.db.models import ImageRecord  # noqa: F401


def main():
    engine = get_db_engine(echo=False)
    Base.metadata.create_all(bind=engine)
    print("✅ Cache de imágenes creado/verificado usando IMAGE_CACHE_URL.")


if __name__ == "__main__":
    main()
