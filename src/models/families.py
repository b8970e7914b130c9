import statsmodels.api as sm


FAMILY_NAMES = ("gaussian", "binomial", "poisson", "gamma")

# Families whose dispersion is fixed at 1.
FIXED_SCALE = {"binomial", "poisson"}


def resolve_family(name: str) -> sm.families.Family:
    if name == "gaussian":
        return sm.families.Gaussian()
    if name == "binomial":
        return sm.families.Binomial()
    if name == "poisson":
        return sm.families.Poisson()
    if name == "gamma":
        return sm.families.Gamma(link=sm.families.links.Log())
    raise ValueError(f"Unknown family: {name}. Choices: {list(FAMILY_NAMES)}")
