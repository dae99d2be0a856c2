import os
from setuptools import setup, find_packages
from setuptools.command.build_py import build_py as _build

CLASSIFIERS = [
    'Operating System :: POSIX',
    'Operating System :: MacOS :: MacOS X',
    'Intended Audience :: Developers',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Topic :: Internet :: WWW/HTTP :: WSGI :: Application'
]

pkgdir = os.path.dirname(os.path.abspath(__file__))

def get_version():
    out = "dev"
    versfile = os.path.join(pkgdir, 'VERSION')
    if os.path.exists(versfile):
        with open(versfile) as fd:
            parts = fd.readline().split()
        if len(parts) > 0:
            out = parts[-1]
    else:
        out = "(unknown)"
    return out

def write_version_mod(version):
    versmodf = os.path.join(pkgdir, 'python', 'vertex', "version.py")
    with open(versmodf, 'w') as fd:
        fd.write('"""')
        fd.write("""
An identification of the vertex package version.  Note that this module file gets 
(over-) written by the build process.  
""")
        fd.write('"""\n\n')
        fd.write('__version__ = "')
        fd.write(version)
        fd.write('"\n')

class build(_build):

    def run(self):
        write_version_mod(get_version())
        _build.run(self)

setup(name='vertex',
      version=get_version(),
      description="vertex: a framework for composing declarative, self-testing HTTP APIs via WSGI",
      package_dir={'': 'python'},
      packages=find_packages('python', include=['vertex', 'vertex.*']),
      python_requires='>=3.8',
      install_requires=[
          'PyJWT>=2.0',
          'PyYAML>=5.1',
          'requests>=2.20'
      ],
      extras_require={
          'test': [ 'pytest' ]
      },
      entry_points={
          'console_scripts': [ 'vertex=vertex.cli:main' ]
      },
      cmdclass={'build_py': build},
      classifiers=CLASSIFIERS,
      zip_safe=False
)
