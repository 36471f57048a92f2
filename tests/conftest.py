"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np
import pandas as pd

from pyregselect.core.datasource import DataSource


# mtcars columns used for R reference values
MTCARS_MPG = [
    21.0, 21.0, 22.8, 21.4, 18.7, 18.1, 14.3, 24.4, 22.8, 19.2, 17.8,
    16.4, 17.3, 15.2, 10.4, 10.4, 14.7, 32.4, 30.4, 33.9, 21.5, 15.5,
    15.2, 13.3, 19.2, 27.3, 26.0, 30.4, 15.8, 19.7, 15.0, 21.4,
]
MTCARS_WT = [
    2.620, 2.875, 2.320, 3.215, 3.440, 3.460, 3.570, 3.190, 3.150, 3.440,
    3.440, 4.070, 3.730, 3.780, 5.250, 5.424, 5.345, 2.200, 1.615, 1.835,
    2.465, 3.520, 3.435, 3.840, 3.845, 1.935, 2.140, 1.513, 3.170, 2.770,
    3.570, 2.780,
]
MTCARS_HP = [
    110, 110, 93, 110, 175, 105, 245, 62, 95, 123, 123, 180, 180, 180,
    205, 215, 230, 66, 52, 65, 97, 150, 150, 245, 175, 66, 91, 113, 264,
    175, 335, 109,
]
MTCARS_AM = [
    1, 1, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 0, 0, 0,
    0, 0, 1, 1, 1, 1, 1, 1, 1,
]


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def simple_regression_data(rng):
    """Simple regression dataset for basic tests."""
    n, p = 100, 3
    X = rng.standard_normal((n, p))
    beta_true = np.array([1.0, -2.0, 0.5])
    y = X @ beta_true + rng.standard_normal(n) * 0.1
    return X, y, beta_true


@pytest.fixture
def collinear_data(rng):
    """Dataset with perfect collinearity."""
    n = 100
    x1 = rng.standard_normal(n)
    x2 = rng.standard_normal(n)
    x3 = x1 + x2
    X = np.column_stack([np.ones(n), x1, x2, x3])
    y = rng.standard_normal(n)
    return X, y


@pytest.fixture
def mtcars():
    """mpg, wt, hp and am of R's mtcars."""
    return DataSource.from_arrays(
        mpg=np.array(MTCARS_MPG),
        wt=np.array(MTCARS_WT),
        hp=np.array(MTCARS_HP, dtype=np.float64),
        am=np.array(MTCARS_AM, dtype=np.float64),
    )


@pytest.fixture
def insurance_like(rng):
    """Synthetic insurance-style table: numeric and factor predictors."""
    n = 200
    age = rng.integers(18, 65, n).astype(np.float64)
    bmi = rng.normal(30.0, 5.0, n)
    children = rng.integers(0, 4, n).astype(np.float64)
    smoker = rng.choice(['no', 'yes'], n, p=[0.8, 0.2])
    sex = rng.choice(['female', 'male'], n)
    region = rng.choice(['northeast', 'northwest', 'southeast', 'southwest'], n)
    log_charges = (
        7.5 + 0.035 * age + 0.01 * bmi + 0.1 * children
        + 1.5 * (smoker == 'yes') + 0.05 * (region == 'southeast')
        + rng.normal(0.0, 0.3, n)
    )
    ds = DataSource.from_arrays(
        age=age, sex=sex, bmi=bmi, children=children,
        smoker=smoker, region=region, charges=np.exp(log_charges),
    )
    return ds


@pytest.fixture
def logistic_data(rng):
    """Binary outcome from a logistic model with a 3-level factor."""
    n = 400
    x1 = rng.standard_normal(n)
    x2 = rng.standard_normal(n)
    group = rng.choice(['a', 'b', 'c'], n)
    eta = -0.5 + 1.2 * x1 - 0.8 * x2 + 0.7 * (group == 'b') - 0.4 * (group == 'c')
    y = (rng.random(n) < 1.0 / (1.0 + np.exp(-eta))).astype(np.float64)
    return DataSource.from_arrays(y=y, x1=x1, x2=x2, group=group)



# === CSV files in the layout of the four analysis datasets ===


@pytest.fixture
def insurance_csv(tmp_path, rng):
    n = 300
    age = rng.integers(18, 65, n)
    sex = rng.choice(['female', 'male'], n)
    bmi = np.round(rng.normal(30.0, 6.0, n), 2)
    children = rng.integers(0, 5, n)
    smoker = rng.choice(['no', 'yes'], n, p=[0.8, 0.2])
    region = rng.choice(['northeast', 'northwest', 'southeast', 'southwest'], n)
    log_charges = (
        7.6 + 0.035 * age + 0.012 * bmi + 0.09 * children
        + 1.5 * (smoker == 'yes') - 0.08 * (region == 'southwest')
        + rng.normal(0.0, 0.35, n)
    )
    frame = pd.DataFrame({
        'age': age, 'sex': sex, 'bmi': bmi, 'children': children,
        'smoker': smoker, 'region': region, 'charges': np.round(np.exp(log_charges), 4),
    })
    path = tmp_path / "insurance.csv"
    frame.to_csv(path, index=False)
    return path


@pytest.fixture
def wine_csv(tmp_path, rng):
    """Semicolon-separated with spaced names, like the UCI red wine file."""
    n = 150
    names = [
        'fixed acidity', 'volatile acidity', 'citric acid', 'residual sugar',
        'chlorides', 'free sulfur dioxide', 'total sulfur dioxide', 'density',
        'pH', 'sulphates', 'alcohol',
    ]
    X = rng.standard_normal((n, len(names)))
    X[:, 0] += 0.6 * X[:, 7]
    score = 5.6 + 0.4 * X[:, 10] - 0.25 * X[:, 1] + 0.15 * X[:, 9] + rng.normal(0.0, 0.6, n)
    frame = pd.DataFrame(np.round(X, 5), columns=names)
    frame['quality'] = np.clip(np.round(score), 3, 8).astype(int)
    path = tmp_path / "winequality-red.csv"
    frame.to_csv(path, index=False, sep=';')
    return path


@pytest.fixture
def admissions_csv(tmp_path, rng):
    n = 400
    gre = rng.integers(22, 81, n) * 10
    gpa = np.round(np.clip(rng.normal(3.4, 0.38, n), 2.26, 4.0), 2)
    rank = rng.choice([1, 2, 3, 4], n, p=[0.15, 0.38, 0.3, 0.17])
    eta = -3.99 + 0.0023 * gre + 0.80 * gpa - 0.68 * (rank == 2) - 1.34 * (rank == 3) - 1.55 * (rank == 4)
    admit = (rng.random(n) < 1.0 / (1.0 + np.exp(-eta))).astype(int)
    path = tmp_path / "binary.csv"
    pd.DataFrame({'admit': admit, 'gre': gre, 'gpa': gpa, 'rank': rank}).to_csv(path, index=False)
    return path


@pytest.fixture
def titanic_csv(tmp_path, rng):
    n = 500
    pclass = rng.choice([1, 2, 3], n, p=[0.25, 0.2, 0.55])
    sex = rng.choice(['female', 'male'], n, p=[0.35, 0.65])
    age = np.round(rng.uniform(1.0, 70.0, n))
    sibsp = rng.integers(0, 3, n)
    parch = rng.integers(0, 3, n)
    fare = np.round(np.where(pclass == 1, 80.0, np.where(pclass == 2, 20.0, 8.0))
                    * rng.uniform(0.7, 1.5, n), 4)
    embarked = rng.choice(['S', 'C', 'Q'], n, p=[0.7, 0.2, 0.1]).astype(object)
    eta = 2.5 - 2.6 * (sex == 'male') - 1.0 * (pclass == 2) - 2.0 * (pclass == 3) - 0.03 * age
    survived = (rng.random(n) < 1.0 / (1.0 + np.exp(-eta))).astype(int)
    age_col = age.astype(object)
    age_col[rng.choice(n, 60, replace=False)] = ''
    embarked[rng.choice(n, 2, replace=False)] = ''
    frame = pd.DataFrame({
        'PassengerId': np.arange(1, n + 1), 'Survived': survived, 'Pclass': pclass,
        'Name': [f"Passenger {i}" for i in range(n)], 'Sex': sex, 'Age': age_col,
        'SibSp': sibsp, 'Parch': parch, 'Ticket': [f"T{i}" for i in range(n)],
        'Fare': fare, 'Cabin': '', 'Embarked': embarked,
    })
    path = tmp_path / "titanic.csv"
    frame.to_csv(path, index=False)
    return path
