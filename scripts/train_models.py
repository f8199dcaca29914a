# scripts/train_models.py
import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from dotenv import load_dotenv
load_dotenv()

from scholarcast.db import Base, engine, SessionLocal
from scholarcast.services.training import TrainingService, STATUS_SUCCESS


def main(trained_by: str = "scripts/train_models") -> int:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        outcomes = TrainingService(db).train_all(trained_by=trained_by)
    finally:
        db.close()

    for o in outcomes:
        line = f"{o.scope}: {o.status}"
        if o.status == STATUS_SUCCESS:
            line += f" {o.version} acc={o.metrics['accuracy']:.3f} f1={o.metrics['f1_score']:.3f}"
        else:
            line += f" ({o.message})"
        print(line)
    return 0 if any(o.status == STATUS_SUCCESS for o in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
