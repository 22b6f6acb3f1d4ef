import sys

from create_survival_cohort.run_pipeline import main

if __name__ == "__main__":
    sys.exit(main())
