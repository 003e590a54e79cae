# portalbot/ai/train_intent.py
# usage: python -m portalbot.ai.train_intent
import sys

from .ai_utils import train
from .trainer import TrainingState


def main() -> int:
    final = None
    for progress in train():
        print(f"[{progress.progress_percent:5.1f}%] {progress.status}")
        final = progress

    if final is None or final.state is not TrainingState.COMPLETED:
        return 1
    print(f"intent model saved ({final.summary.get('epochs_run')} epochs, best loss {final.summary.get('best_loss'):.4f})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
